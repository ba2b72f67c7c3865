"""Prompt templates and fixed reply texts.

Each model-facing template has a stable id. Builders in `prompt_builder` attach
the id to the system message so the persona prompt can be found by sentinel, and
so stub models in tests can answer by task.

Structured-output contracts (mirrored by `mediabot.media.parsing`):
    - response type: one word, `default|math|image|media`.
    - media request: `{"mediaType", "searchIntent", "searchTerms"}`.
    - selection: `{"selectionType", "value"}` or `null`.
    - granular: `{"selection": [{"season", "episodes"?}]}`, `[]` = entire series,
      `null` = not mentioned.
    - media kind: `{"mediaType": "movie"|"tv_show"}`.
    - topic switch: `SWITCH` or `CONTINUE`.
    - image queries: `[{"query", "title"}]`.
"""

SYSTEM_PROMPT_ID = "mediabot-system-prompt"

RESPONSE_TYPE_PROMPT_ID = "prompt-response-type"
MEDIA_REQUEST_PROMPT_ID = "prompt-media-request"
MEDIA_KIND_PROMPT_ID = "prompt-media-kind"
TOPIC_SWITCH_PROMPT_ID = "prompt-topic-switch"
SEARCH_QUERY_PROMPT_ID = "prompt-search-query"
DELETE_QUERY_PROMPT_ID = "prompt-delete-query"
SELECTION_PROMPT_ID = "prompt-selection"
GRANULAR_PROMPT_ID = "prompt-granular"
IMAGE_QUERIES_PROMPT_ID = "prompt-image-queries"
MATH_SOLUTION_PROMPT_ID = "prompt-math-solution"
MATH_REPLY_PROMPT_ID = "prompt-math-reply"
IMAGE_REPLY_PROMPT_ID = "prompt-image-reply"
DOWNLOAD_STATUS_PROMPT_ID = "prompt-download-status"
MEDIA_CONTEXT_PROMPT_ID = "prompt-media-context"


# =========================================================
# PERSONA
# =========================================================

SYSTEM_PROMPT = (
    "You are MediaBot, a friendly member of a small group chat of old friends.\n"
    "You help with everyday questions, math, pictures, and the group's shared movie "
    "and TV library.\n"
    "Every message you receive has the form: <author> said \"<message>\".\n"
    "Keep answers short and conversational. Never invent library contents, download "
    "progress, or search results; only describe data you were given.\n"
)


# =========================================================
# CLASSIFICATION
# =========================================================

RESPONSE_TYPE_PROMPT = (
    "Decide how the next message should be answered. Reply with exactly one word.\n\n"
    "image   - the user asks you to draw, create, or generate a picture.\n"
    "math    - the user asks a math question or wants a non-trivial problem solved. "
    "Simple arithmetic such as 1 + 2 is not math.\n"
    "media   - the message is about movies, TV shows, or series: downloading, adding, "
    "deleting, searching, browsing the library, or checking download progress.\n"
    "default - anything else.\n"
)

MEDIA_REQUEST_PROMPT = (
    "Analyze the media request and return one minified JSON object:\n"
    '{"mediaType": "movies"|"shows"|"both", '
    '"searchIntent": "library"|"external"|"both"|"delete", '
    '"searchTerms": "..."}\n\n'
    "mediaType: movies for films, shows for TV/series/episodes, both when unclear or "
    "general.\n"
    "searchIntent: library for browsing what is already there (\"what do I have\", "
    "\"do I have\"); external for finding or adding new content (\"search for\", "
    "\"download\", \"add\", \"get me\"); both for existing and new content; delete for "
    "removing content.\n"
    "searchTerms: titles, people, genres, years, or themes. Drop verbs, filler words, "
    "and the words movie/show. Use an empty string for plain library listings.\n\n"
    'Example: "download The Batman" -> {"mediaType":"movies","searchIntent":"external",'
    '"searchTerms":"The Batman"}\n'
    'Example: "what shows do I have?" -> {"mediaType":"shows","searchIntent":"library",'
    '"searchTerms":""}\n'
    "Return only JSON."
)

MEDIA_KIND_PROMPT = (
    "Is the title in this request a movie or a TV show? Return one minified JSON "
    'object: {"mediaType": "movie"|"tv_show"}. If you cannot tell, answer movie.'
)

TOPIC_SWITCH_PROMPT = (
    "The user was asked to choose one of these results for \"{query}\":\n"
    "{options}\n\n"
    "Their reply is below. If the reply is a choice, a clarification, or anything "
    "about picking from these results (including seasons or episodes), answer "
    "CONTINUE. If they moved on to an unrelated topic or a different request, "
    "answer SWITCH. Reply with one word."
)


# =========================================================
# MEDIA PARSING
# =========================================================

SEARCH_QUERY_PROMPT = (
    "Extract the title to search for from the request. Return only the title, no "
    "quotes and no extra words. Drop phrases such as \"the first one\", years used to "
    "pick a result, and season or episode numbers. If there is no title, return NONE."
)

DELETE_QUERY_PROMPT = (
    "The user wants to remove something from the library. Return only the title of "
    "the movie or show to remove, without quotes, verbs, or season/episode numbers. "
    "If there is no title, return NONE."
)

SELECTION_PROMPT = (
    "Does the message pick one item from a list of results? Return one minified JSON "
    'object {"selectionType": "ordinal"|"year"|"title"|"keyword", "value": "..."} or '
    "null when it does not.\n"
    "ordinal: a position such as \"the first one\" or \"#2\" (value is the number).\n"
    "year: a release year such as \"the 1999 one\".\n"
    "title: part of a title such as \"the one called Dune\".\n"
    "keyword: a descriptive word such as \"the animated one\".\n"
    "Return only JSON."
)

GRANULAR_PROMPT = (
    "Does the message say which seasons or episodes of a TV show are wanted? Return "
    'one minified JSON object {"selection": [{"season": 1, "episodes": [1, 2]}]}.\n'
    "Omit episodes to mean the whole season. Use {\"selection\": []} for the entire "
    "series or all seasons. Return null when seasons and episodes are not mentioned.\n"
    "Return only JSON."
)

IMAGE_QUERIES_PROMPT = (
    "Extract the images the user wants generated from the message. Return a minified "
    'JSON array of at most 3 objects {"title": "short title", "query": "detailed '
    'image prompt"}. Return only JSON.'
)


# =========================================================
# RESPONDERS
# =========================================================

MATH_SOLUTION_PROMPT = (
    "Solve the math question step by step and return only LaTeX body content, with "
    "no documentclass, usepackage, or document environment. Use $ $ for inline math "
    "and $$ $$ for display math. Align long equations on the equals sign. Use "
    "\\section{Title} for headings and \\textbf{} for bold. No emojis or unicode."
)

MATH_REPLY_PROMPT = (
    "Tell the user the solution is shown in the image below. Do not repeat the "
    "solution itself."
)

IMAGE_REPLY_PROMPT = (
    "Tell the user the image they asked for is shown below. Do not say you cannot "
    "draw; you can."
)

DOWNLOAD_STATUS_PROMPT = (
    "The user asked about downloads. Summarize the active downloads from the JSON "
    "below: title, progress, size, and time left. Mention only items present in the "
    "data and do not add titles.\n\n{data}"
)

MEDIA_CONTEXT_PROMPT = (
    "The user asked about movies or TV shows. Answer conversationally using only the "
    "data below.\n"
    "Library sections list what they already have; use ✅ for downloaded and 📥 for "
    "missing items.\n"
    "Search result sections list titles that can be added; mark them with ➕ and say "
    "they are not in the library yet.\n"
    "When both appear, keep them clearly separated.\n\n{data}"
)


# =========================================================
# FIXED REPLIES
# =========================================================

QUEUE_CLEAR_REPLY = "No downloads are currently active. The queue is clear!"

DOWNLOAD_SERVICES_UNAVAILABLE_REPLY = (
    "I couldn't reach the download services right now, so I can't check the queue. "
    "Please try again in a bit."
)

PARTIAL_QUEUE_CLEAR_REPLY = (
    "No {available} downloads are active right now. I couldn't reach the {unavailable} "
    "service, so I can't say anything about those."
)

MEDIA_APOLOGY_REPLY = (
    "Sorry, something went wrong while handling that media request. I've reset things "
    "on my end, so please try again."
)

STRATEGY_ERROR_REPLY = "Sorry, I encountered an error: {error}. Please try again."

DIAGNOSTIC_ERROR_REPLY = "sorry an error happened:\n```\n{error}\n```"

IMAGE_ERROR_REPLY = "Sorry, I couldn't generate the image. Error: {error}"

NO_IMAGE_QUERIES_REPLY = (
    "I couldn't work out what to draw from that. Could you describe the picture you want?"
)

ASK_FOR_TITLE_REPLY = "Which {media} did you mean? Tell me the title and I'll look it up."

NO_RESULTS_REPLY = "I couldn't find any {media} matching \"{query}\"."

NOT_IN_LIBRARY_REPLY = "I couldn't find any {media} matching \"{query}\" in the library."

MULTIPLE_RESULTS_REPLY = (
    "I found several {media} for \"{query}\":\n{options}\n\n"
    "Which one do you want? You can answer with a number, a year, or part of the title."
)

MULTIPLE_TV_RESULTS_REPLY = (
    "I found several shows for \"{query}\":\n{options}\n\n"
    "Which one do you want? You can also say which seasons or episodes, "
    "e.g. \"the second one, season 1\"."
)

SELECTION_NOT_UNDERSTOOD_REPLY = (
    "Sorry, I couldn't tell which one you meant. Here are the options again:\n{options}\n\n"
    "Reply with a number, a year, or part of the title."
)

ASK_GRANULARITY_REPLY = (
    "Got it, **{title}**. Which seasons or episodes do you want? "
    "Say something like \"season 1\", \"season 2 episodes 1-3\", or \"the whole series\"."
)

GRANULARITY_NOT_UNDERSTOOD_REPLY = (
    "Sorry, I didn't catch which seasons of **{title}** you want. Try \"season 1\", "
    "\"season 2 episodes 1-3\", or \"the whole series\"."
)

DOWNLOAD_STARTED_REPLY = "✅ Added **{title}** and started searching for a download."

TV_DOWNLOAD_STARTED_REPLY = (
    "✅ Added **{title}** ({selection}) and started searching for downloads."
)

DOWNLOAD_FAILED_REPLY = "❌ I couldn't add **{title}**: {error}"

DELETE_DONE_REPLY = "🗑️ Removed **{title}** from the library and deleted its files."

TV_DELETE_DONE_REPLY = "🗑️ Removed {selection} of **{title}** and deleted the files."

DELETE_FAILED_REPLY = "❌ I couldn't remove **{title}**: {error}"

DELETE_CHOOSE_BOTH_REPLY = (
    "I found several shows in the library for \"{query}\":\n{options}\n\n"
    "Which show do you want to remove, and which seasons or episodes (or the whole series)?"
)

DELETE_CHOOSE_RESULT_REPLY = (
    "I found several shows in the library for \"{query}\":\n{options}\n\n"
    "Which one should I remove {selection} from?"
)

DELETE_CHOOSE_SERIES_REPLY = (
    "Found **{title}** in the library. Should I remove the whole series, or only some "
    "seasons or episodes?"
)

INVALID_SEASONS_REPLY = (
    "**{title}** doesn't have season(s) {seasons} in the library. It has: {available}. "
    "Which seasons or episodes should I remove?"
)

ASK_SEARCH_TERMS_REPLY = (
    "What should I search for? Give me a title, an actor, or a genre."
)
