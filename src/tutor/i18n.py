from __future__ import annotations

STRINGS: dict[str, dict[str, str]] = {
    "opening": {
        "en": "Hello! To get started, describe what you have already tried or send a photo of your draft. "
              "If you have not started yet, just say so and we will begin together.",
        "fr": "Bonjour ! Pour commencer, décris-moi ce que tu as déjà fait ou envoie-moi une photo de ton brouillon. "
              "Si tu n'as pas encore commencé, dis-le moi et nous débuterons ensemble.",
    },
    "already_solved": {
        "en": "It looks like you have already solved this exercise. Excellent work! "
              "If you have other questions, feel free to ask.",
        "fr": "Il semble que tu aies déjà résolu cet exercice avec succès. Excellent travail ! "
              "Si tu as d'autres questions, n'hésite pas.",
    },
    "completed": {
        "en": "Well done, you have completed every step! The exercise is solved.",
        "fr": "Bravo, vous avez terminé toutes les étapes ! L'exercice est résolu.",
    },
    "reveal": {"en": "Here is the expected answer: **\"{expected}\"**. Let's continue.",
               "fr": "Voici la réponse attendue : **\"{expected}\"**. Continuons."},
    "reveal_separator": {"en": "\" or \"", "fr": "\" ou \""},
    "reveal_empty": {"en": "Let's move on to the next step.", "fr": "Passons à l'étape suivante."},
    "redirect_correction": {
        "en": "No problem. Redirecting you to the detailed correction.",
        "fr": "Pas de problème. Je vous redirige vers la correction détaillée.",
    },
    "default_hint": {"en": "Not quite. Look at the question again.",
                     "fr": "Pas tout à fait. Relis la question."},
    "default_feedback": {"en": "Correct!", "fr": "Correct !"},
    "validation_failed": {
        "en": "Your answer could not be checked: {error}. You can send it again.",
        "fr": "Votre réponse n'a pas pu être vérifiée : {error}. Vous pouvez la renvoyer.",
    },
    "validation_rate_limited": {
        "en": "Your answer could not be checked: {error}. The daily AI limit is reached, come back tomorrow.",
        "fr": "Votre réponse n'a pas pu être vérifiée : {error}. La limite quotidienne d'IA est atteinte, revenez demain.",
    },
    "validation_unavailable": {
        "en": "Your answer could not be checked: {error}. The AI tutor is unavailable right now.",
        "fr": "Votre réponse n'a pas pu être vérifiée : {error}. Le tuteur IA est indisponible pour le moment.",
    },
    "start_help": {
        "en": "I need help to get started on this exercise. Guide me step by step.",
        "fr": "J'ai besoin d'aide pour commencer cet exercice. Guide-moi pas à pas (mode socratique).",
    },
}

def t(key: str, lang: str, **kwargs: object) -> str:
    text = STRINGS.get(key, {}).get(lang, STRINGS.get(key, {}).get("en", key))
    return text.format(**kwargs) if kwargs else text
