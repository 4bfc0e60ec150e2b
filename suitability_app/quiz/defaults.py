"""Default content for the suitability questionnaire.

Loaded by ``manage.py seed_quiz_questions`` when the site has fewer than
ten questions configured. Administrators may edit the rows afterwards.
"""

QUIZ_TITLE = "שאלון התאמה - חלק א׳"

# Shown to respondents. The band thresholds applied when scoring are in settings.
QUIZ_INSTRUCTIONS = (
    "אנא ענה על כל השאלות. עליך לצבור 21 נקודות ומעלה (מתוך 40) כדי לעבור את המבחן."
)


def _choices(*labels):
    return [{"label": label, "points": points} for points, label in enumerate(labels, 1)]


DEFAULT_QUESTIONS = [
    {
        "text": "מהי רמת הניסיון שלך בשוק ההון?",
        "choices": _choices(
            "אין לי ניסיון כלל",
            "השקעות בסיסיות (כגון קניית קרנות נאמנות דרך הבנק)",
            "מבצע פעולות עצמאיות בתדירות בינונית",
            "עוקב ומבצע פעולות שוטפות באופן עצמאי",
        ),
    },
    {
        "text": "מה היקף ההשקעות שלך בשוק ההון?",
        "choices": _choices(
            "עד 10% מהנכסים שלי",
            "10%-30% מהנכסים שלי",
            "30%-50% מהנכסים שלי",
            "מעל 50% מהנכסים שלי",
        ),
    },
    {
        "text": "כמה זמן אתה מקדיש לעקיבה אחר השקעותיך?",
        "choices": _choices(
            "כמעט לא עוקב",
            "עוקב מדי פעם (פעם בחודש או פחות)",
            "עוקב באופן קבוע (פעם בשבוע)",
            "עוקב באופן יומיומי",
        ),
    },
    {
        "text": "מה היקף הידע שלך בכלים פיננסיים מורכבים?",
        "choices": _choices(
            "אין לי ידע בכלים מורכבים",
            "ידע בסיסי בכלים מורכבים",
            "ידע טוב בכלים מורכבים",
            "ידע מתקדם וניסיון בכלים מורכבים",
        ),
    },
    {
        "text": "איך אתה מגיב לירידות בשוק?",
        "choices": _choices(
            "נכנס לפאניקה ומוכר מיד",
            "מודאג אבל מחכה להתאוששות",
            "שומר על קור רוח ומנתח את המצב",
            "רואה הזדמנות לקנייה נוספת",
        ),
    },
    {
        "text": "מה אופק הזמן להשקעותיך?",
        "choices": _choices(
            "פחות משנה",
            "1-3 שנים",
            "3-7 שנים",
            "מעל 7 שנים",
        ),
    },
    {
        "text": "איך אתה מגדיר את יכולת הסיכון שלך?",
        "choices": _choices(
            "שמרני מאוד - מעדיף ביטחון על פני תשואה",
            "שמרני - מוכן לסיכון נמוך לתשואה מתונה",
            "מתון - מוכן לסיכון בינוני לתשואה טובה",
            "אגרסיבי - מוכן לסיכון גבוה לתשואה גבוהה",
        ),
    },
    {
        "text": "מה המטרה העיקרית של ההשקעות שלך?",
        "choices": _choices(
            "שמירה על הון וביטחון פיננסי",
            "הכנסה שוטפת (דיבידנדים, ריביות)",
            "צמיחה מתונה של ההון",
            "צמיחה אגרסיבית של ההון",
        ),
    },
    {
        "text": "איך אתה מתמודד עם תנודתיות בתיק ההשקעות?",
        "choices": _choices(
            "תנודתיות גורמת לי ללחץ רב",
            "מעדיף תנודתיות נמוכה",
            "יכול להתמודד עם תנודתיות בינונית",
            "תנודתיות לא מפריעה לי",
        ),
    },
    {
        "text": "מה רמת ההבנה שלך בדוחות כספיים וניתוח חברות?",
        "choices": _choices(
            "אין לי הבנה בדוחות כספיים",
            "הבנה בסיסית בדוחות כספיים",
            "הבנה טובה וניסיון בניתוח דוחות",
            "הבנה מתקדמת וניסיון בניתוח יסודי",
        ),
    },
]


def install_default_questions(force: bool = False) -> int:
    """
    Write DEFAULT_QUESTIONS into QuizQuestion.

    Existing questions are left alone unless fewer than ten are configured
    or ``force`` is set, in which case they are replaced.

    Returns:
        Number of questions written
    """
    from django.db import transaction

    from .models import QUESTION_COUNT, QuizQuestion

    if not force and QuizQuestion.objects.count() >= QUESTION_COUNT:
        return 0

    with transaction.atomic():
        QuizQuestion.objects.all().delete()
        QuizQuestion.objects.bulk_create(
            QuizQuestion(
                order=order,
                text=question["text"],
                choices=question["choices"],
                explanation=question.get("explanation", ""),
            )
            for order, question in enumerate(DEFAULT_QUESTIONS)
        )
    return len(DEFAULT_QUESTIONS)
