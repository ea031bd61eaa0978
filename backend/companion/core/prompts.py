"""
Prompt templates and fixed texts for the derived session content.
Conversations are in Dutch, so are the prompts.
"""

from datetime import datetime
from typing import List

from ..utils.dates import MONTHS_NL

USER_LABEL = "Gebruiker"
ASSISTANT_LABEL = "Assistent"

# Transcripts longer than this get the concise summary prompt
SUMMARY_LENGTH_THRESHOLD = 1500
# Transcript characters offered to the title prompt
TITLE_CONTEXT_CHARS = 1000
# Transcript characters offered to the question prompt
QUESTIONS_CONTEXT_CHARS = 2000

ACT_THEMES = [
    "acceptatie", "waarden", "commitment", "zelf", "defusie",
    "mindfulness", "actie", "perspectief", "zelfcompassie",
    "flexibiliteit", "emoties", "gedachten", "bewustzijn",
]

FALLBACK_SUMMARY = "Deze sessie onderzocht ACT-therapie concepten en persoonlijke reflecties."

DEFAULT_REFLECTIVE_QUESTIONS = [
    "Hoe kun je vandaag één kleine stap zetten richting wat echt belangrijk voor je is?",
    "Welke gedachten of gevoelens zijn moeilijk om te accepteren?",
    "Wat zou een vriendelijke manier zijn om jezelf te benaderen wanneer je vastzit?",
]

FILLER_QUESTIONS = [
    "Welke waarde zou je vandaag meer aandacht willen geven in je leven?",
    "Hoe kan mindfulness je helpen bij de uitdagingen die je nu ervaart?",
    "Hoe zou je beste zelf omgaan met de uitdagingen van vandaag?",
]

# Padding questions for detected themes, tried before the generic fillers
THEME_QUESTIONS = [
    (("waarden", "commitment"), "Welke kleine actie kun je nemen die in lijn is met je waarden?"),
    (("acceptatie", "mindfulness"), "Welk moeilijk gevoel kun je vandaag met meer zachtheid observeren?"),
    (("zelf", "perspectief"), "Hoe zou je situatie eruit zien als je het vanuit een afstand kon bekijken?"),
    (("defusie", "gedachten"), "Welke gedachte kun je vandaag wat losser vasthouden?"),
]


def theme_questions(themes: List[str]) -> List[str]:
    """Padding questions that match at least one of ``themes``, in table order."""
    return [question for keys, question in THEME_QUESTIONS if any(k in themes for k in keys)]


def time_based_question(now: datetime) -> str:
    """A question that varies with the moment it is asked."""
    options = [
        f"Wat is één ding waar je vandaag ({now.day} {MONTHS_NL[now.month - 1]}) dankbaar voor bent?",
        "Hoe zou je beste zelf omgaan met de uitdagingen van vandaag?",
        "Wat is één waarde die je deze week belangrijk vindt om te leven?",
    ]
    return options[now.minute % len(options)]


def concise_summary_prompt(transcript: str) -> str:
    return f"""Maak een korte, betekenisvolle samenvatting (maximaal 2 zinnen) van deze ACT-therapie conversatie.
Focus op de kernthema's en inzichten die aan bod kwamen.

Conversatie:
{transcript}

Samenvatting:"""


def detailed_summary_prompt(transcript: str) -> str:
    return f"""Maak een betekenisvolle samenvatting (3 tot 4 zinnen) van deze korte ACT-therapie conversatie.
Beschrijf waar de gebruiker mee bezig was, welke gevoelens of gedachten naar voren kwamen
en welke ACT-principes relevant zijn.

Conversatie:
{transcript}

Samenvatting:"""


def themes_prompt(transcript: str) -> str:
    return f"""Welke van de volgende ACT-thema's zijn van toepassing op deze conversatie?
Kies er 2 tot 4 uit deze lijst: {", ".join(ACT_THEMES)}.

Conversatie:
{transcript}

Antwoord alleen met de gekozen thema's, gescheiden door komma's."""


def reflective_questions_prompt(transcript: str, themes: List[str]) -> str:
    theme_text = ", ".join(themes) if themes else "algemene ACT-principes"
    excerpt = transcript[:QUESTIONS_CONTEXT_CHARS]
    if len(transcript) > QUESTIONS_CONTEXT_CHARS:
        excerpt += " ..."
    return f"""Genereer precies 3 korte reflectievragen op basis van deze ACT-therapie conversatie.
De vragen moeten:
1. In de ik-vorm geschreven zijn
2. Aansluiten bij deze thema's: {theme_text}
3. Maximaal 15 woorden per vraag bevatten

Conversatie:
{excerpt}

Geef alleen de 3 vragen, één per regel, zonder nummering."""


def title_prompt(summary: str, transcript: str) -> str:
    return f"""Bedenk een korte, onderscheidende titel (maximaal 5 woorden) voor deze ACT-therapie sessie.
Gebruik geen aanhalingstekens en geen punt aan het eind.

Samenvatting:
{summary}

Begin van de conversatie:
{transcript[:TITLE_CONTEXT_CHARS]}

Titel:"""
