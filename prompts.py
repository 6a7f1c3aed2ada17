"""Prompt templates for the generation service."""

from __future__ import annotations

LANGUAGE_NAMES = {"en": "English", "ta": "Tamil"}


def language_name(lang: str) -> str:
    return LANGUAGE_NAMES.get(lang, "English")


EXTRACT_SYLLABUS_PROMPT = """Extract the {exam} syllabus from this text into structured JSON.
Format: [{{"subject": "History", "topics": [{{"name": "Topic", "subtopics": ["Sub"],
"weightage": "High" | "Medium" | "Low", "marksWeight": 10}}]}}].
Language: {language}.
Return ONLY the JSON array.
Content: {content}"""

SCHEDULE_PROMPT = """As a {exam} expert, generate a {days}-day study plan.

START DATE: {start_date}
END DATE: {end_date}
EXAM DATE: {exam_date} ({days_until_exam} days remaining)
STUDY HOURS/DAY: {hours}
TECHNIQUES: {methods}
PREFERENCES: {preferences}

SYLLABUS: {syllabus}
{progress}

{intensity}

RULES:
1. Generate EXACTLY {days} days starting from {start_date}, one per calendar date.
2. PRIORITIZE missed topics in the first week.
3. Saturdays: MOCK_TEST.
4. Sundays: REVISION.
5. Don't repeat completed topics.
6. Each task should be concise: "Subject - Topic (Xhrs)".
7. Language: {language}.

FORMAT (JSON array):
[{{"id": "day-1", "date": "YYYY-MM-DD", "type": "STUDY" | "REVISION" | "MOCK_TEST" | "REST",
  "tasks": ["Task 1", "Task 2"], "isCompleted": false}}]

Return ONLY valid JSON."""

NEAR_EXAM_NOTE = "EXAM IS NEAR: Increase revision days, add more mock tests, focus on high-yield topics."
REGULAR_PACE_NOTE = "Regular pace: Balance new topics with revision."
NEAR_EXAM_DAYS = 60

INTERLEAVED_RULE = """INTERLEAVED STUDY: each day's "tasks" array MUST have exactly 3 items:
- "Slot 1: [core subject topic] (2hrs)"
- "Slot 2: [aptitude / mental ability topic] (1hr)"
- "Slot 3: [dynamic topic, e.g. current affairs or science] (1.5hrs)\""""

CURRENT_AFFAIRS_PROMPT = """Find 5-6 of the latest current affairs from the past 7 days relevant to {exam}.
Categories: STATE, NATIONAL, ECONOMY, SCIENCE, INTERNATIONAL.
Return EXCLUSIVELY a JSON array of objects with keys: title, summary, category, date.
Language: {language}."""

QUIZ_PROMPT = """As an exam setter, write {count} multiple-choice questions on: {topic}.
Language: {language}.
Return a JSON array of objects:
{{"question": "...", "options": ["A", "B", "C", "D"], "correctAnswer": 0, "explanation": "..."}}
correctAnswer is the zero-based index of the right option."""

PRACTICE_PROMPT = """As an examiner, generate {count} difficult questions on these topics: {topics}.
One question MUST be of 'Assertion and Reason' type.
Return EXCLUSIVELY a JSON array: [{{"question": "...", "explanation": "..."}}].
Language: {language}.
Context from previous papers: {papers}"""

MOCK_TEST_PROMPT = """As an examiner, generate a mock test of {count} MCQs in {language}.
Topics: {topics}.
Context from previous papers: {papers}.
Return a JSON array of objects with question, options, correctAnswer, explanation."""

MOTIVATION_PROMPT = "Short motivational quote for a student preparing for a competitive exam. Language: {language}. Just text."

DAILY_SUMMARY_PROMPT = """As a friendly mentor, give a 30-45 second motivational briefing on today's study plan.

TASKS FOR TODAY:
- {tasks}

LANGUAGE: {language}

Keep it encouraging, explain why the topics matter, max 100 words, plain text only."""

PARSE_SCHEDULE_PROMPT = """Transform this manual study schedule into structured JSON study days.
Exam date: {exam_date}.
Content: {content}
Format: JSON array of {{"id", "date", "type", "tasks", "isCompleted"}}."""
