"""
Keyword intent resolution for user messages.

Search and confirmation keywords match anywhere in the message, case
insensitive ("searching for dune", "yess"). Greetings and the two-letter
"ok" must stand as whole words, otherwise "history" would greet and "book"
would confirm.
"""
import re

from .models import Intent

GREETING_PATTERN = re.compile(r"\b(hello|hi|hey|good (morning|afternoon|evening))\b", re.IGNORECASE)
SEARCH_PATTERN = re.compile(r"search|find", re.IGNORECASE)
AFFIRMATIVE_PATTERN = re.compile(r"yes|yeah|yep|sure|\bok(ay)?\b", re.IGNORECASE)
# whole words carrying a search keyword, plus a standalone "for"
SEARCH_STRIP_PATTERN = re.compile(r"\w*(search|find)\w*|\bfor\b", re.IGNORECASE)

GREETING_REPLY = "Hello! I can help you find movies and TV shows. What would you like to watch?"
FOUND_REPLY = 'I found "{title}". Would you like to watch it?'
NOT_FOUND_REPLY = ("I couldn't find any movies or TV shows matching your search. "
                   "Please try a different search term.")
MISSING_TERM_REPLY = "What movie or TV show would you like me to search for?"
NAVIGATION_REPLY = "Great! Taking you to watch {title}."
ERROR_REPLY = "I'm sorry, I encountered an error. Please try again."


def resolve_intent(text: str, has_pending_result: bool = False) -> Intent:
    """First match wins: greeting, search, confirmation, then chat."""
    if GREETING_PATTERN.search(text):
        return Intent.GREETING
    if SEARCH_PATTERN.search(text):
        return Intent.SEARCH
    if has_pending_result and AFFIRMATIVE_PATTERN.search(text):
        return Intent.CONFIRM_WATCH
    return Intent.CHAT


def extract_search_term(text: str) -> str:
    """Drop the search keywords and surrounding punctuation: "Find me Inception!" -> "me Inception"."""
    stripped = SEARCH_STRIP_PATTERN.sub(" ", text)
    return " ".join(stripped.split()).strip(" .,!?;:\"'")
