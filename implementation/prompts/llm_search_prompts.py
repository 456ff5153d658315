from implementation.classes.enums import SearchLanguage


LLM_SEARCH_SYSTEM_PROMPT = """\
You are a movie-matching assistant. Respond with strict JSON only. Do not add explanations.
"""


def build_llm_search_user_prompt(query: str, language: SearchLanguage) -> str:
    language_name = language.display_name
    return f"""\
You are a movie expert. Given a vague scene description in {language_name}, guess the top 5 most likely movies.
Return strict JSON with this shape:
{{
  "results": [
    {{
      "title": "Movie Title",
      "year": 1979,
      "description": "One-sentence summary (max 25 words)",
      "main_characters": ["Name1", "Name2"],
      "reason": "Why this matches the scene (max 20 words)",
      "match_score": 0.0
    }}
  ]
}}
- Always return exactly 5 results ordered best to worst.
- All text fields (description, main_characters, reason) must be written in {language_name}.
- Keep original/official movie title; do not translate titles.
- Use plausible titles/years; if unsure about year, omit it.
- Keep text concise; avoid spoilers; no extra commentary outside JSON.
- If a field is unknown, leave it out rather than inventing details.

Scene: "{query}"
"""
