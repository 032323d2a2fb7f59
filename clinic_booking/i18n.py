"""
Language preference for user-facing booking messages.

The preference is never global state: it is resolved per request from the
persisted cookie into a LanguageContext and passed explicitly to whatever
builds a message. Updating it persists the new value back to the cookie.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from fastapi import Request, Response

logger = logging.getLogger(__name__)

LANGUAGE_COOKIE_NAME = "lang"
LANGUAGE_COOKIE_MAX_AGE = 365 * 24 * 3600


class Language(str, Enum):
    ENGLISH = "en"
    HINDI = "hi"
    MARATHI = "mr"


DEFAULT_LANGUAGE = Language.ENGLISH

MESSAGES: dict[Language, dict[str, str]] = {
    Language.ENGLISH: {
        "booking.confirmed": (
            "Your {consultation} consultation is booked for {date} at {time}."
        ),
        "booking.confirmed_email": "Confirmation emails have been sent to you and our clinic.",
        "booking.email_warning": (
            "We could not send the confirmation email, but your appointment is saved. "
            "Please contact us on WhatsApp if you need a copy."
        ),
        "booking.upload_warning": "Some files could not be uploaded: {files}.",
        "consultation.online": "online",
        "consultation.clinic": "in-clinic",
    },
    Language.HINDI: {
        "booking.confirmed": "आपका {consultation} परामर्श {date} को {time} बजे बुक हो गया है।",
        "booking.confirmed_email": "पुष्टि ईमेल आपको और हमारे क्लिनिक को भेज दिए गए हैं।",
        "booking.email_warning": (
            "हम पुष्टि ईमेल नहीं भेज सके, लेकिन आपका अपॉइंटमेंट सुरक्षित है। "
            "कॉपी के लिए कृपया व्हाट्सऐप पर संपर्क करें।"
        ),
        "booking.upload_warning": "कुछ फ़ाइलें अपलोड नहीं हो सकीं: {files}।",
        "consultation.online": "ऑनलाइन",
        "consultation.clinic": "क्लिनिक",
    },
    Language.MARATHI: {
        "booking.confirmed": "तुमचा {consultation} सल्ला {date} रोजी {time} वाजता बुक झाला आहे.",
        "booking.confirmed_email": "पुष्टीकरण ईमेल तुम्हाला आणि आमच्या क्लिनिकला पाठवले आहेत.",
        "booking.email_warning": (
            "आम्ही पुष्टीकरण ईमेल पाठवू शकलो नाही, पण तुमची अपॉइंटमेंट जतन झाली आहे. "
            "प्रतसाठी कृपया व्हाट्सअपवर संपर्क करा."
        ),
        "booking.upload_warning": "काही फाइल्स अपलोड झाल्या नाहीत: {files}.",
        "consultation.online": "ऑनलाइन",
        "consultation.clinic": "क्लिनिकमधील",
    },
}


def parse_language(value: Optional[str]) -> Language:
    try:
        return Language((value or "").lower())
    except ValueError:
        return DEFAULT_LANGUAGE


@dataclass(frozen=True)
class LanguageContext:
    language: Language = DEFAULT_LANGUAGE

    def t(self, key: str, **params) -> str:
        """Translate a message key, falling back to English, then to the key itself"""
        template = MESSAGES[self.language].get(key) or MESSAGES[DEFAULT_LANGUAGE].get(key, key)
        return template.format(**params) if params else template


def get_language_context(request: Request) -> LanguageContext:
    """FastAPI dependency: read the persisted preference from the request cookie"""
    return LanguageContext(parse_language(request.cookies.get(LANGUAGE_COOKIE_NAME)))


def persist_language(response: Response, language: Language) -> LanguageContext:
    """Store a new preference on the response and return the matching context"""
    response.set_cookie(
        key=LANGUAGE_COOKIE_NAME,
        value=language.value,
        max_age=LANGUAGE_COOKIE_MAX_AGE,
        samesite="lax",
        path="/",
    )
    logger.debug(f"🌐 Language preference set to {language.value}")
    return LanguageContext(language)
