from __future__ import annotations

from .models import ActionChallenge, Challenge, TriviaChallenge

# Served whenever the challenge database is missing, down or has nothing that fits.
BUILTIN_CHALLENGES: tuple[Challenge, ...] = (
    TriviaChallenge(
        id="trivia_1",
        category="General Knowledge",
        age_rating="ALL",
        points=10,
        question="What is the capital of France?",
        answers=("London", "Paris", "Berlin", "Madrid"),
        correct_answer=1,
    ),
    TriviaChallenge(
        id="trivia_2",
        category="Science",
        age_rating="ALL",
        points=10,
        question="What planet is known as the Red Planet?",
        answers=("Venus", "Jupiter", "Mars", "Saturn"),
        correct_answer=2,
    ),
    TriviaChallenge(
        id="trivia_3",
        category="Sports",
        age_rating="ALL",
        points=10,
        question="How many players are on a soccer team on the field?",
        answers=("9", "10", "11", "12"),
        correct_answer=2,
    ),
    ActionChallenge(
        id="action_1", type="ACTION", category="Physical", age_rating="ALL", points=5,
        action="Do 5 jumping jacks!",
    ),
    ActionChallenge(
        id="action_2", type="ACTION", category="Physical", age_rating="ALL", points=5,
        action="Balance on one foot for 10 seconds!",
    ),
    ActionChallenge(
        id="action_3", type="ACTION", category="Creative", age_rating="ALL", points=5,
        action="Sing the first line of your favorite song!",
    ),
    ActionChallenge(
        id="dare_1", type="DARE", category="Social", age_rating="TEEN", points=15,
        action="Tell everyone your most embarrassing moment!",
    ),
    ActionChallenge(
        id="dare_2", type="DARE", category="Social", age_rating="TEEN", points=15,
        action="Imitate the player on your left for the next turn!",
    ),
    ActionChallenge(
        id="drink_1", type="DRINKING", category="Party", age_rating="ADULT", points=5,
        action="Take a sip of your drink!",
    ),
    ActionChallenge(
        id="drink_2", type="DRINKING", category="Party", age_rating="ADULT", points=10,
        action="Everyone drinks! Cheers!",
    ),
)
