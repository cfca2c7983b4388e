"""
Canonical department names for the campus library.

Catalog exports spell departments in dozens of ways ("Comp Engg", "H&AS Maths",
"EXTC Engineering", ...). resolve_department() maps any raw value onto one of
CANONICAL_DEPARTMENTS so department matching can be done by equality.
"""
import re
from typing import Optional

CANONICAL_DEPARTMENTS = [
    "Computer Engineering",
    "Information Technology",
    "Artificial Intelligence & Machine Learning",
    "Data Science",
    "EXTC",
    "Mechanical",
    "Civil",
    "H & AS",
]

FALLBACK_DEPARTMENT = "H & AS"

AIML = "Artificial Intelligence & Machine Learning"

DEPARTMENT_SYNONYMS = {
    "aiml": AIML,
    "articialinteeligence": AIML,
    "artificialinteelience": AIML,
    "artificialinteeligence": AIML,
    "artificialintelligence": AIML,
    "artificialintelligencemachinelearning": AIML,
    "compengineering": "Computer Engineering",
    "compitengineering": "Computer Engineering",
    "compitengineeringmaths": "Computer Engineering",
    "computer": "Computer Engineering",
    "computerengg": "Computer Engineering",
    "computerenggit": "Computer Engineering",
    "computerenggitengg": "Computer Engineering",
    "computerengineering": "Computer Engineering",
    "cs": "Computer Engineering",
    "computerscienceinformationtechnology": "Information Technology",
    "informationtech": "Information Technology",
    "informationtechnology": "Information Technology",
    "informationtecnology": "Information Technology",
    "it": "Information Technology",
    "itengg": "Information Technology",
    "civil": "Civil",
    "civilengg": "Civil",
    "civilengineeing": "Civil",
    "civilengineerimg": "Civil",
    "civilengineering": "Civil",
    "civilemgineering": "Civil",
    "communicationskills": "H & AS",
    "chemistry": "H & AS",
    "chemstry": "H & AS",
    "dadascience": "Data Science",
    "datascience": "Data Science",
    "datascienceartificialintelligence": "Data Science",
    "electronicsandtelecommunications": "EXTC",
    "evs": "H & AS",
    "ex": "EXTC",
    "extc": "EXTC",
    "extcengg": "EXTC",
    "extcengineering": "EXTC",
    "exte": "EXTC",
    "frenchlanguage": "H & AS",
    "general": "H & AS",
    "genral": "H & AS",
    "genralhas": "H & AS",
    "germanlanguage": "H & AS",
    "has": "H & AS",
    "haschemistry": "H & AS",
    "hascs": "H & AS",
    "hasevs": "H & AS",
    "hasgen": "H & AS",
    "hasjapanese": "H & AS",
    "haslaw": "H & AS",
    "haslibsci": "H & AS",
    "hasmanagement": "H & AS",
    "hasmaths": "H & AS",
    "hasmathematics": "H & AS",
    "hasmgmt": "H & AS",
    "hasphysics": "H & AS",
    "japaneselanguage": "H & AS",
    "management": "H & AS",
    "mathematics": "H & AS",
    "maths": "H & AS",
    "mecg": "Mechanical",
    "mech": "Mechanical",
    "mechcivilautomobile": "Mechanical",
    "mechcivilautomobileetc": "Mechanical",
    "mechengineering": "Mechanical",
    "mechanicalengg": "Mechanical",
    "mechanicalengineering": "Mechanical",
    "mechnicalengineering": "Mechanical",
    "meths": "H & AS",
    "mrvh": "H & AS",
    "pct": "H & AS",
    "phy": "H & AS",
    "physics": "H & AS",
    "spanishlanguage": "H & AS",
}

# Checked in order after the synonym table misses
DEPARTMENT_PATTERN_RULES = [
    (re.compile(r"(aiml|artificial|machinelearning)"), AIML),
    (re.compile(r"datascience"), "Data Science"),
    (re.compile(r"computer|comp(?!lete)"), "Computer Engineering"),
    (re.compile(r"informationtech|\bit\b"), "Information Technology"),
    (re.compile(r"civil"), "Civil"),
    (re.compile(r"mech|automobile"), "Mechanical"),
    (re.compile(r"extc|electronicsandtelecommunication|^ex$"), "EXTC"),
    (
        re.compile(r"has|math|chem|evs|communication|language|general|management|physics|pct|mrvh|phy"),
        "H & AS",
    ),
]


def sanitize_department_key(value: str) -> str:
    """Lowercase, spell out '&' and drop everything that isn't a letter or digit."""
    return re.sub(r"[^a-z0-9]+", "", value.lower().replace("&", "and"))


def resolve_department(raw_department: Optional[str]) -> str:
    trimmed = (raw_department or "").strip()
    if not trimmed:
        return FALLBACK_DEPARTMENT

    key = sanitize_department_key(trimmed)
    if key in DEPARTMENT_SYNONYMS:
        return DEPARTMENT_SYNONYMS[key]

    for pattern, department in DEPARTMENT_PATTERN_RULES:
        if pattern.search(key):
            return department

    return FALLBACK_DEPARTMENT

