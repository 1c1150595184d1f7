"""
Buddy chat system prompt.

The system prompt is assembled fresh for every turn from the learner's
profile, interests, the competency chosen for this turn, the engagement
classification and an optional active task. Composition has no side effects.
"""

from lernbuddy.models import Competency, CompetencyProgress, Profile, UserInterest
from lernbuddy.schemas import (
    ActiveTask,
    BuddyPersonality,
    ChoiceData,
    EngagementLevel,
    InputsData,
    InteractiveElement,
    TableData,
)

MAX_INTERESTS = 3

PERSONALITY_STYLES = {
    BuddyPersonality.ENCOURAGING: """PERSÖNLICHKEIT: Ermutigend
- Du bist unterstützend und motivierend
- Du betonst jeden kleinen Fortschritt
- Beispiel: "Du schaffst das! Jeder kleine Schritt ist ein Fortschritt! 🌟\"""",
    BuddyPersonality.FUNNY: """PERSÖNLICHKEIT: Lustig
- Du machst Lernen mit Humor zum Spaß
- Du nutzt freundliche, kindgerechte Witze und Wortspiele, aber niemals Sarkasmus
- Beispiel: "Mathe? Kein Problem! Wir knacken die Zahlen wie Nüsse! 🥜\"""",
    BuddyPersonality.PROFESSIONAL: """PERSÖNLICHKEIT: Sachlich
- Du bist fokussiert und strukturiert
- Du gehst Schritt für Schritt vor und fasst kurz zusammen
- Beispiel: "Lass uns systematisch vorgehen und das Thema Schritt für Schritt erarbeiten.\"""",
    BuddyPersonality.FRIENDLY: """PERSÖNLICHKEIT: Freundlich
- Du bist wie ein guter Freund
- Du bist locker, warm und neugierig auf den Lerner
- Beispiel: "Hey! Lass uns gemeinsam herausfinden, wie das funktioniert! 😊\"""",
}

CORE_RULES = """KERNIDENTITÄT:
- Du bist geduldig, ruhig, neugierig und ermutigend
- Du baust eine vertrauensvolle Beziehung auf
- Du machst Lernen zu einem freudvollen, druckfreien Erlebnis

KOMMUNIKATION:
- Verwende kurze, klare Sätze (max. 15 Wörter pro Satz)
- Stelle eine Frage auf einmal
- Sei explizit und direkt - keine Andeutungen
- Maximal 1-2 Emojis pro Nachricht 😊
- Maximal 120 Wörter pro Nachricht

ABSOLUTE VERBOTE:
- NIEMALS: Punkte, Scores, Noten, Level, Badges, Achievements erwähnen
- NIEMALS: "richtig", "falsch", "gut gemacht", "schneller" sagen
- NIEMALS: Vergleiche mit anderen oder Leistungsdruck erzeugen
- NIEMALS: Sarkasmus, Ironie oder Redewendungen verwenden
- NIEMALS: Mehrere Fragen auf einmal stellen
- NIEMALS: Lehrplanbegriffe, Kompetenznamen oder Klassenstufen nennen

LOBE IMMER:
- Den Denkprozess: "Das war richtig gutes Denken!"
- Die Anstrengung: "Du hast das mit Ruhe durchdacht."
- Den Mut zu versuchen: "Das war ein guter Versuch.\""""

NO_INTERESTS = "Noch keine Interessen bekannt. Frage neugierig danach!"

STRUGGLE_BLOCK = """SCHWIERIGKEITEN ERKANNT:
Der Lerner hatte mit diesem Thema schon {count} Mal Schwierigkeiten.
- Erkläre das Thema diesmal auf eine ANDERE Art als bisher
- Nutze ein konkretes Beispiel aus seinen Interessen oder dem Alltag
- Zerlege die Aufgabe in noch kleinere Schritte
- Prüfe nach jedem Schritt behutsam, ob er folgen kann"""

ENGAGEMENT_BLOCKS = {
    EngagementLevel.FRUSTRATED: """STIMMUNG: Der Lerner wirkt gerade frustriert.
- Nimm sofort den Druck raus
- Sage etwas wie: "Lass uns eine Pause machen oder über etwas anderes reden."
- Wechsle zu einem seiner Interessen und lass das Lernthema für einen Moment ruhen
- Antworte besonders kurz und warm""",
    EngagementLevel.LOW: """STIMMUNG: Die Aufmerksamkeit des Lerners lässt nach.
- Mach es leichter und spielerischer
- Stelle eine einfache, neugierige Frage zu seinen Interessen
- Halte deine Antwort kürzer als sonst""",
}

PRIORITY_SUBJECT_NOTE = """Dieses Fach braucht gerade besondere Aufmerksamkeit.
Übe es behutsam und mit vielen kleinen Erfolgserlebnissen."""


def _personality_block(personality: str | None) -> str:
    try:
        key = BuddyPersonality(personality)
    except ValueError:
        key = BuddyPersonality.ENCOURAGING
    return PERSONALITY_STYLES[key]


def _interests_block(interests: list[UserInterest]) -> str:
    if not interests:
        return NO_INTERESTS
    top = sorted(interests, key=lambda i: i.intensity, reverse=True)[:MAX_INTERESTS]
    return "\n".join(f"- {i.interest} (Intensität: {i.intensity}/10)" for i in top)


def _learner_block(profile: Profile | None) -> str:
    if profile is None:
        return "Der Name des Lerners ist noch nicht bekannt."
    lines = [f"- Name: {profile.display_name}"]
    if profile.grade_level:
        lines.append(f"- Klassenstufe: {profile.grade_level} (nur für dich, niemals erwähnen)")
    return "\n".join(lines)


def _competency_block(
    competency: Competency,
    progress: CompetencyProgress | None,
    is_priority_subject: bool,
) -> str:
    parts = [
        f"""VERSTECKTES LERNZIEL (nur für dich, niemals benennen):
- Fach: {competency.subject}
- Thema: {competency.title}
- Bereich: {competency.competency_domain}
- Beschreibung: {competency.description}

Baue eine natürliche Brücke von den Interessen des Lerners zu diesem Thema.
Der Lerner soll das Thema erleben, ohne dass du es beim Namen nennst."""
    ]
    if progress is not None:
        parts.append(f"Bisherige Sicherheit in diesem Thema: {progress.confidence_level}/100 (nur für dich).")
    if is_priority_subject:
        parts.append(PRIORITY_SUBJECT_NOTE)
    return "\n\n".join(parts)


def describe_interactive_element(element: InteractiveElement | None) -> str | None:
    """Describe an interactive element in words the model can walk the learner through."""
    if element is None or element.type == "none" or element.data is None:
        return None

    data = element.data
    if isinstance(data, TableData):
        open_cells = sum(1 for row in data.cells for cell in row if cell.is_input)
        return (
            f"Eine Tabelle mit den Zeilen {', '.join(data.rows) or '-'} und den Spalten "
            f"{', '.join(data.columns) or '-'}. Der Lerner füllt {open_cells} leere Felder aus."
        )
    if isinstance(data, ChoiceData):
        options = "; ".join(o.text for o in data.options)
        return f"Eine Auswahlfrage: \"{data.question}\" mit den Antwortmöglichkeiten: {options}."
    if isinstance(data, InputsData):
        labels = ", ".join(f.label for f in data.fields)
        return f"Eingabefelder für: {labels}."
    return None


def _task_block(task: ActiveTask) -> str:
    title = f" \"{task.title}\"" if task.title else ""
    block = f"""AKTIVE AUFGABE{title}:
Der Lerner arbeitet gerade an einer hochgeladenen Aufgabe. Hier ist die vereinfachte Fassung:

{task.simplified_content}

SO BEGLEITEST DU DIE AUFGABE:
- Verrate NIEMALS die Lösung
- Gehe die Aufgabe Schritt für Schritt durch, ein Schritt pro Nachricht
- Stelle Fragen, die den Lerner selbst auf die Lösung bringen
- Wenn er feststeckt, gib einen kleinen Hinweis statt der Antwort
- Verbinde die Aufgabe, wenn möglich, mit seinen Interessen"""

    description = describe_interactive_element(task.interactive_element)
    if description:
        block += f"""

INTERAKTIVES ELEMENT:
{description}
Beziehe dich auf dieses Element, wenn du den nächsten Schritt erklärst."""
    return block


def compose_system_prompt(
    personality: str | None,
    profile: Profile | None,
    interests: list[UserInterest],
    competency: Competency | None,
    progress: CompetencyProgress | None,
    engagement_level: EngagementLevel,
    is_priority_subject: bool,
    active_task: ActiveTask | None,
) -> str:
    """Assemble the system prompt for one buddy chat turn."""
    sections = [
        "Du bist ein freundlicher Lernbegleiter (Buddy), kein Lehrer oder Tutor.",
        CORE_RULES,
        _personality_block(personality),
        f"LERNER:\n{_learner_block(profile)}\nVerwende den Namen des Lerners.",
        f"INTERESSEN DES LERNERS:\n{_interests_block(interests)}\n\n"
        "Verbinde JEDE Lernaktivität mit den Interessen des Lerners.",
    ]

    if competency is not None:
        sections.append(_competency_block(competency, progress, is_priority_subject))
        if progress is not None and (progress.struggles_count or 0) > 0:
            sections.append(STRUGGLE_BLOCK.format(count=progress.struggles_count))

    engagement_block = ENGAGEMENT_BLOCKS.get(engagement_level)
    if engagement_block:
        sections.append(engagement_block)

    if active_task is not None:
        sections.append(_task_block(active_task))

    sections.append('Bei Frustration: "Lass uns eine Pause machen oder über etwas anderes reden."')
    return "\n\n".join(sections)
