"""Team archetype classification from a revealed roster."""
from typing import Dict, List, Sequence

from ..data.dex import to_id
from ..data.models import Pokemon, TeamClassification

WEATHER_ABILITIES = {
    "drought": "sun",
    "drizzle": "rain",
    "sandstream": "sand",
    "snowwarning": "snow",
}
WEATHER_MOVES = {
    "sunnyday": "sun",
    "raindance": "rain",
}
CHOICE_ITEMS = {"choicespecs", "choiceband", "choicescarf"}

ARCHETYPE_DESCRIPTIONS: Dict[str, str] = {
    "Hard Trick Room": "A team built around Trick Room with multiple setters for reliability",
    "TailRoom": "A flexible team that can operate under both Tailwind and Trick Room",
    "Sun Offense": "An offensive team utilizing sun weather to power up Fire-type attacks",
    "Rain Offense": "An offensive team utilizing rain weather to power up Water-type attacks",
    "Balance Bros": "A balanced team featuring Incineroar and Rillaboom for defensive synergy",
    "Psy-Spam": "A team focused on Psychic Terrain with Expanding Force for massive spread damage",
    "Tailwind Hyper Offense": "An aggressive team using Tailwind and Choice items for overwhelming speed and power",
    "Tailwind": "A speed-based team utilizing Tailwind for speed control",
    "Trick Room": "A team utilizing Trick Room for speed control",
    "Sun": "A team utilizing sun weather",
    "Rain": "A team utilizing rain weather",
    "Sand": "A team utilizing sandstorm weather",
    "Snow": "A team utilizing snow weather",
    "Unclassified": "A team that doesn't fit standard archetypes",
}


def archetype_description(archetype: str) -> str:
    return ARCHETYPE_DESCRIPTIONS.get(archetype, "A unique team composition")


def classify_team(team: Sequence[Pokemon]) -> TeamClassification:
    """Classify a team by its speed control, weather and core members.

    Only what the log revealed is considered, so an opponent's team with
    few revealed moves usually classifies as "Unclassified".
    """
    users: Dict[str, List[str]] = {
        "weather_setters": [], "choice_users": [], "trick_room_users": [],
        "tailwind_users": [], "psy_terrain_users": [],
    }
    weather_type = ""
    expanding_force_users: List[str] = []
    species_ids = set()

    for pokemon in team:
        species_ids.add(pokemon.id)

        weather = WEATHER_ABILITIES.get(to_id(pokemon.ability))
        if weather:
            weather_type = weather
            users["weather_setters"].append(pokemon.name)

        if to_id(pokemon.item) in CHOICE_ITEMS:
            users["choice_users"].append(pokemon.name)

        for move in pokemon.moves:
            move_id = move.id or to_id(move.name)
            if move_id == "trickroom":
                users["trick_room_users"].append(pokemon.name)
            elif move_id == "tailwind":
                users["tailwind_users"].append(pokemon.name)
            elif move_id in WEATHER_MOVES:
                weather_type = weather_type or WEATHER_MOVES[move_id]
                users["weather_setters"].append(pokemon.name)
            elif move_id == "psychicterrain":
                users["psy_terrain_users"].append(pokemon.name)
            elif move_id == "expandingforce":
                expanding_force_users.append(pokemon.name)

    result = TeamClassification(
        weather_type=weather_type,
        has_balance_bros=(
            any("incineroar" in s for s in species_ids) and any("rillaboom" in s for s in species_ids)
        ),
        **users,
    )
    archetype = _archetype(result, expanding_force_users)
    return result.model_copy(update={
        "archetype": archetype,
        "description": archetype_description(archetype),
        "tags": tuple(_tags(result)),
    })


def _archetype(c: TeamClassification, expanding_force_users: List[str]) -> str:
    """Pick the first matching archetype, most specific first."""
    has_trick_room = bool(c.trick_room_users)
    has_tailwind = bool(c.tailwind_users)

    if len(c.trick_room_users) >= 2:
        return "Hard Trick Room"
    if has_tailwind and has_trick_room:
        return "TailRoom"
    if c.weather_setters and c.weather_type == "sun":
        return "Sun Offense"
    if c.weather_setters and c.weather_type == "rain":
        return "Rain Offense"
    if c.has_balance_bros:
        return "Balance Bros"
    if c.psy_terrain_users and expanding_force_users:
        return "Psy-Spam"
    if has_tailwind and c.choice_users:
        return "Tailwind Hyper Offense"
    if has_tailwind:
        return "Tailwind"
    if has_trick_room:
        return "Trick Room"
    if c.weather_setters and c.weather_type in ("sand", "snow"):
        return c.weather_type.capitalize()
    return "Unclassified"


def _tags(c: TeamClassification) -> List[str]:
    tags = []
    if c.trick_room_users:
        tags.append("trick-room")
    if c.tailwind_users:
        tags.append("tailwind")
    if c.weather_type:
        tags.append(f"weather-{c.weather_type}")
    if c.psy_terrain_users:
        tags.append("psychic-terrain")
    if c.choice_users:
        tags.append("choice-items")
    if c.has_balance_bros:
        tags.append("balance-bros")
    return tags
