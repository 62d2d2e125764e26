"""
services/match/missions.py
Static catalog of campus missions and the per-match draw.
"""

import random
from dataclasses import dataclass
from typing import Iterable, Optional

from shared.models.models import LookingFor

ROMANTIC = LookingFor.ROMANTIC.value
FRIENDSHIP = LookingFor.FRIENDSHIP.value
STUDY_BUDDY = LookingFor.STUDY_BUDDY.value
NETWORKING = LookingFor.NETWORKING.value
ALL_TYPES = (ROMANTIC, FRIENDSHIP, STUDY_BUDDY, NETWORKING)

MISSIONS_PER_MATCH = 3


@dataclass(frozen=True)
class Mission:
    id: int
    title: str
    description: str
    location: str
    difficulty: str        # easy | medium | hard
    emoji: str
    category: str          # booth | campus | food | academic | creative
    suitable_for: tuple[str, ...]


CAMPUS_MISSIONS: tuple[Mission, ...] = (
    # Booths
    Mission(1, "Jail Booth Challenge", "Visit the Jail Booth together and take a fun mugshot.",
            "Jail Booth", "easy", "🚔", "booth", ALL_TYPES),
    Mission(2, "Marriage Booth Ceremony", "Get 'married' at the Marriage Booth and take a wedding photo.",
            "Marriage Booth", "easy", "💍", "booth", (ROMANTIC,)),
    Mission(3, "Friendship Booth Memory", "Make friendship bracelets or take a BFF photo at the Friendship Booth.",
            "Friendship Booth", "easy", "🤝", "booth", ALL_TYPES),
    Mission(4, "Confession Booth Secret", "Trade a harmless secret at the Confession Booth.",
            "Confession Booth", "medium", "🙏", "booth", (ROMANTIC, FRIENDSHIP)),
    # Campus
    Mission(5, "SFC Lobby Selfie", "Take a creative selfie together in the SFC Lobby.",
            "SFC Lobby", "easy", "🤳", "campus", ALL_TYPES),
    Mission(6, "Canteen Food Challenge", "Try three different canteen dishes and rate them together.",
            "UE Canteen", "medium", "🍽️", "food", ALL_TYPES),
    Mission(7, "Campus Walk & Talk", "Take a 15-minute walk around campus and swap stories.",
            "UE Campus", "medium", "🚶", "campus", (ROMANTIC, FRIENDSHIP)),
    Mission(8, "College Building Tour", "Show each other around your college buildings.",
            "Various Colleges", "medium", "🏛️", "academic", ALL_TYPES),
    Mission(9, "Gym Buddy Session", "Work out together for half an hour.",
            "UE Gym", "medium", "💪", "campus", (FRIENDSHIP, ROMANTIC, STUDY_BUDDY)),
    Mission(10, "Garden Picnic", "Share snacks on a bench in the campus garden.",
             "Campus Garden", "easy", "🧺", "campus", (ROMANTIC, FRIENDSHIP)),
    Mission(11, "Coffee Shop Chat", "Grab a drink and talk about anything but classes.",
             "Campus Coffee Shop", "easy", "☕", "food", ALL_TYPES),
    Mission(12, "Campus Scavenger Hunt", "Find five landmarks on campus and snap a photo at each.",
             "Entire Campus", "hard", "🔍", "campus", (ROMANTIC, FRIENDSHIP, STUDY_BUDDY)),
    Mission(13, "Create a TikTok/Reel", "Film a short video together somewhere on campus.",
             "Anywhere on Campus", "medium", "🎬", "creative", (ROMANTIC, FRIENDSHIP, NETWORKING)),
    Mission(14, "Share Your Playlist", "Swap your top five songs and listen together.",
             "Anywhere", "easy", "🎧", "creative", (ROMANTIC, FRIENDSHIP, STUDY_BUDDY)),
    Mission(15, "Campus Sunset Watch", "Find the best spot on campus to watch the sunset.",
             "Campus Rooftop/View", "easy", "🌅", "campus", (ROMANTIC, FRIENDSHIP)),
    Mission(16, "Flash Mob Dance", "Learn a short dance and perform it in public.",
             "Campus Plaza", "hard", "💃", "creative", (ROMANTIC, FRIENDSHIP)),
    Mission(17, "Book Exchange", "Trade a favorite book and talk about why you love it.",
             "Library or Anywhere", "easy", "📚", "academic", ALL_TYPES),
    Mission(18, "Career Goals Workshop", "Map out your five-year plans and give each other feedback.",
             "Study Area or Coffee Shop", "medium", "🎯", "academic", (NETWORKING, STUDY_BUDDY, FRIENDSHIP)),
    Mission(19, "Campus History Tour", "Visit three historic spots and learn one fact at each.",
             "Historical Campus Sites", "medium", "🏺", "academic", ALL_TYPES),
    Mission(20, "Compliment Challenge", "Give each other five genuine compliments.",
             "Anywhere", "easy", "💬", "campus", (ROMANTIC, FRIENDSHIP)),
    Mission(21, "Photo Booth Marathon", "Take photos at three different booths.",
             "Multiple Locations", "medium", "📸", "creative", ALL_TYPES),
    Mission(22, "Campus Radio Shoutout", "Send each other a song dedication through campus radio.",
             "Campus Radio Station", "medium", "📻", "creative", (ROMANTIC, FRIENDSHIP)),
    Mission(23, "Sketch Each Other", "Draw quick portraits of each other, no skill required.",
             "Art Room or Garden", "easy", "🎨", "creative", (ROMANTIC, FRIENDSHIP, STUDY_BUDDY)),
    Mission(24, "Campus Mystery Box", "Each bring a small surprise item for the other.",
             "Anywhere", "medium", "🎁", "campus", (ROMANTIC, FRIENDSHIP)),
    Mission(25, "Debate Challenge", "Pick a light topic and debate it, then switch sides.",
             "Study Area", "medium", "🗣️", "academic", ALL_TYPES),
    Mission(26, "Campus Clean-Up", "Spend twenty minutes picking up litter together.",
             "Campus Grounds", "medium", "🧹", "campus", ALL_TYPES),
    Mission(27, "Origami Session", "Fold three origami figures and trade them.",
             "Library or Study Area", "easy", "🦢", "creative", (ROMANTIC, FRIENDSHIP, STUDY_BUDDY)),
    Mission(28, "Campus Vlog Day", "Vlog a day in your campus life together.",
             "Entire Campus", "hard", "🎥", "creative", (ROMANTIC, FRIENDSHIP, NETWORKING)),
    Mission(29, "Time Capsule Creation", "Write notes to open together at the end of the semester.",
             "Anywhere", "medium", "⏳", "creative", (ROMANTIC, FRIENDSHIP)),
    Mission(30, "Campus Food Crawl", "Eat something from four different food stalls.",
             "Campus Food Areas", "hard", "🍢", "food", ALL_TYPES),
    Mission(31, "Study Technique Exchange", "Teach each other your best study trick.",
             "Library or Study Area", "easy", "📝", "academic", (STUDY_BUDDY, NETWORKING, FRIENDSHIP)),
    Mission(32, "Campus Photography Walk", "Take ten artistic photos of campus together.",
             "Entire Campus", "medium", "📷", "creative", ALL_TYPES),
    Mission(33, "Gratitude Circle", "Share three things you are each grateful for.",
             "Quiet Campus Spot", "easy", "🙌", "campus", (ROMANTIC, FRIENDSHIP, STUDY_BUDDY)),
    Mission(34, "Campus Meme Creation", "Make three memes about campus life.",
             "Anywhere", "easy", "😂", "creative", ALL_TYPES),
    Mission(35, "Board Game Battle", "Play a board game of your choice, best of three.",
             "PODCIT 4th floor", "easy", "🎲", "campus", ALL_TYPES),
    Mission(36, "Campus Podcast Episode", "Record a ten-minute podcast about student life.",
             "Quiet Area", "hard", "🎙️", "creative", (FRIENDSHIP, NETWORKING, ROMANTIC)),
    Mission(37, "Future Letter Exchange", "Write letters to each other's future selves.",
             "Anywhere", "medium", "✉️", "creative", (ROMANTIC, FRIENDSHIP)),
)

_BY_ID = {m.id: m for m in CAMPUS_MISSIONS}


def get_mission(mission_id: int) -> Optional[Mission]:
    return _BY_ID.get(mission_id)


def _admits(looking_for: Optional[str], mission: Mission) -> bool:
    if looking_for is None or looking_for == LookingFor.EVERYONE.value:
        return True
    return looking_for in mission.suitable_for


def suitable_missions(looking_for: Iterable[Optional[str]]) -> list[Mission]:
    """Missions every party's relationship goal admits."""
    goals = [getattr(g, "value", g) for g in looking_for]
    return [m for m in CAMPUS_MISSIONS if all(_admits(g, m) for g in goals)]


def draw_missions(
    looking_for: Iterable[Optional[str]] = (),
    rng: Optional[random.Random] = None,
) -> list[int]:
    """Three distinct mission ids. Falls back to the whole catalog if too few fit."""
    pool = suitable_missions(looking_for)
    if len(pool) < MISSIONS_PER_MATCH:
        pool = list(CAMPUS_MISSIONS)
    picks = (rng or random).sample(pool, MISSIONS_PER_MATCH)
    return [m.id for m in picks]
