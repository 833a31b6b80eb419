"""
api.py – Gemini front-end that turns free‑form text into calendar events.

The model is asked for a JSON object whose ``events`` array uses iCalendar
property names (DTSTART, DTEND, SUMMARY, ...). Whatever it replies – clean
JSON, JSON wrapped in prose, iCalendar lines or plain sentences – is handed
to :func:`event_parser.parse_text_for_events`, so the caller always gets at
least one event back.

Example
-------
>>> from API import API
>>> api = API(
...     gemini_api_key="YOUR_KEY",
...     location="Europe/Paris",
...     language="French",
... )
>>> events = api.extract_event(raw_text)
>>> events[0].title
"""

from __future__ import annotations

import datetime
import logging
from typing import Any, Dict, List, Optional

import google.generativeai as genai

from calendar_models import CalendarEvent
from event_parser import find_json_events, parse_text_for_events
from settings import ParserSettings, resolve_timezone_name

# --------------------------------------------------------------------------- #
# Logging                                                                     #
# --------------------------------------------------------------------------- #
logger = logging.getLogger(__name__)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)

# --------------------------------------------------------------------------- #
# API wrapper                                                                 #
# --------------------------------------------------------------------------- #
class API:
    """
    Lightweight helper around Gemini models.

    Parameters
    ----------
    gemini_api_key : str
        Your Gemini API key (mandatory).
    location : str, default "Europe/Paris"
        IANA time‑zone the events should be expressed in. Also used as the
        parser's default zone.
    language : str, default "English"
        Language for SUMMARY / DESCRIPTION values (e.g. "English", "French").
    default_model : str, default "gemini-2.5-flash"
        Gemini model name used by default.

    Attributes
    ----------
    api_key : str
        Stored API key.
    location : str
        Time‑zone inserted in prompts.
    language : str
        Target language for text values.
    default_model : str
        Default Gemini model.
    settings : ParserSettings
        Parser configuration derived from *location*.
    """

    def __init__(
        self,
        gemini_api_key: str,
        location: str = "Europe/Paris",
        language: str = "English",
        default_model: str = "gemini-2.5-flash",
    ) -> None:
        self.api_key: str = (gemini_api_key or "").strip()
        if not self.api_key:
            raise ValueError("Gemini API key must not be empty.")

        genai.configure(api_key=self.api_key)

        self.location: str = resolve_timezone_name(location)
        self.language: str = language
        self.default_model: str = default_model
        self.settings: ParserSettings = ParserSettings(default_timezone=self.location)

    # --------------------------------------------------------------------- #
    # Public methods                                                        #
    # --------------------------------------------------------------------- #
    def generate_prompt(self, today: Optional[datetime.date] = None) -> str:
        """Build the system prompt used for event extraction."""
        current_date = (today or datetime.date.today()).strftime("%Y-%m-%d")
        return f"""Extract every calendar event mentioned in the following text and return only a single JSON object like this:
{{
  "events": [
    {{
      "UID": "event-1",
      "DTSTART": "20250915T080000",
      "DTEND": "20250915T090000",
      "SUMMARY": "PHYSIQUE-CHIMIE",
      "DESCRIPTION": "Weekly lesson",
      "LOCATION": "B714",
      "TZID": "{self.location}"
    }}
  ]
}}

Rules
-----
1. If the same event is repeated in the text, merge the duplicates.
2. DTSTART and DTEND use the form YYYYMMDDTHHMMSS in the {self.location}
   time‑zone (no trailing Z), or YYYYMMDD for all‑day events.
3. Output MUST be valid JSON with no extra text.
4. SUMMARY, DESCRIPTION and LOCATION must be written in {self.language}.
5. Leave out DTEND when the end time is unknown; never invent a DTSTART.

(Current date: {current_date})

Here is the text:
"""

    def gemini_normal(self, message: str) -> str:
        """Single-turn request to the default model; returns the reply text."""
        model = genai.GenerativeModel(self.default_model)
        return model.generate_content([{"role": "user", "parts": [message]}]).text

    def gemini_calendar(self, message: str) -> str:
        """Build prompt + user text, then call Gemini for calendar extraction."""
        prompt = self.generate_prompt()
        full_message = f"{prompt}\n{message}"
        logger.info(
            "Generate calendar event (timezone: %s, language: %s, model: %s)",
            self.location,
            self.language,
            self.default_model,
        )
        return self.gemini_normal(full_message)

    # --------------------------------------------------------------------- #
    # Static helpers                                                        #
    # --------------------------------------------------------------------- #
    def extract_and_parse_json(self, reply_text: str) -> Optional[Dict[str, Any]]:
        """
        Extract the JSON object holding the ``events`` array from `reply_text`.

        Returns
        -------
        dict | None
            Parsed JSON if successful, otherwise None.
        """
        parsed = find_json_events(reply_text)
        if parsed is None:
            logger.warning("No JSON events object found in Gemini reply.")
            return None

        logger.info("JSON parsed successfully (%d event(s) found).", len(parsed["events"]))
        return parsed

    def extract_event(
        self,
        message: str,
        now: Optional[datetime.datetime] = None,
    ) -> List[CalendarEvent]:
        """
        High‑level helper: ask Gemini to extract events, then normalize the
        reply into calendar events (never an empty list).
        """
        events = parse_text_for_events(self.gemini_calendar(message), settings=self.settings, now=now)
        logger.info("%d event(s) extracted from Gemini reply.", len(events))
        return events
