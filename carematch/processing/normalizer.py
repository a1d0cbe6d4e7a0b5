"""Normalization of extracted field values.

Standardizes US state references and date representations so that
credentials and requisitions coming from different documents compare
consistently during matching.
"""

import logging
import re
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class Normalizer:
    """Normalizes raw state and date values to a consistent format."""
    
    # Full names and common variations (lowercase) to two-letter codes
    STATE_CODES: Dict[str, str] = {
        "alabama": "AL", "alaska": "AK", "arizona": "AZ", "arkansas": "AR",
        "california": "CA", "colorado": "CO", "connecticut": "CT", "delaware": "DE",
        "florida": "FL", "georgia": "GA", "hawaii": "HI", "idaho": "ID",
        "illinois": "IL", "indiana": "IN", "iowa": "IA", "kansas": "KS",
        "kentucky": "KY", "louisiana": "LA", "maine": "ME", "maryland": "MD",
        "massachusetts": "MA", "michigan": "MI", "minnesota": "MN", "mississippi": "MS",
        "missouri": "MO", "montana": "MT", "nebraska": "NE", "nevada": "NV",
        "new hampshire": "NH", "new jersey": "NJ", "new mexico": "NM", "new york": "NY",
        "north carolina": "NC", "north dakota": "ND", "ohio": "OH", "oklahoma": "OK",
        "oregon": "OR", "pennsylvania": "PA", "rhode island": "RI", "south carolina": "SC",
        "south dakota": "SD", "tennessee": "TN", "texas": "TX", "utah": "UT",
        "vermont": "VT", "virginia": "VA", "washington": "WA", "west virginia": "WV",
        "wisconsin": "WI", "wyoming": "WY",
        # DC
        "district of columbia": "DC", "washington dc": "DC", "washington d.c.": "DC",
        # Territories
        "puerto rico": "PR", "guam": "GU", "virgin islands": "VI",
        "american samoa": "AS", "northern mariana islands": "MP",
    }
    
    VALID_CODES = frozenset(STATE_CODES.values())
    
    # Common date formats seen on licenses and certifications
    DATE_FORMATS = [
        "%Y-%m-%d",           # ISO format
        "%m/%d/%Y",           # US format
        "%m/%d/%y",           # US short year
        "%B %d, %Y",          # January 15, 2026
        "%B %d %Y",           # January 15 2026
        "%b %d, %Y",          # Jan 15, 2026
        "%b %d %Y",           # Jan 15 2026
        "%d %B %Y",           # 15 January 2026
        "%d %b %Y",           # 15 Jan 2026
        "%Y/%m/%d",           # ISO with slashes
        "%m-%d-%Y",           # US with dashes
    ]
    
    def normalize_state(self, value: Optional[str]) -> Optional[str]:
        """Convert a state name, code, or "City, ST" location to a two-letter code.
        
        Args:
            value: State name, abbreviation, or location string
            
        Returns:
            Two-letter state code or None if the value can't be normalized
        """
        if not value:
            return None
        
        trimmed = value.strip()
        if not trimmed:
            return None
        
        upper = trimmed.upper()
        if len(upper) == 2 and upper in self.VALID_CODES:
            return upper
        
        code = self.STATE_CODES.get(trimmed.lower())
        if code:
            return code
        
        # "City, ST" or "City, ST 12345"
        match = re.search(r',\s*([A-Za-z]{2})\s*(?:\d{5}(?:-\d{4})?)?\s*$', trimmed)
        if match:
            return self.normalize_state(match.group(1))
        
        # "City, State Name" with optional zip
        match = re.search(r',\s*([A-Za-z][A-Za-z\s.]+?)\s*(?:\d{5}(?:-\d{4})?)?\s*$', trimmed)
        if match:
            return self.STATE_CODES.get(match.group(1).strip().lower())
        
        return None
    
    def normalize_timestamp(self, value: Any) -> Optional[datetime]:
        """Parse a point in time from a date, datetime, or string in any common format.
        
        Naive values are taken as UTC and a date without a time means the
        start of that day.
        
        Args:
            value: Raw date or timestamp value
            
        Returns:
            Timezone-aware UTC datetime or None if parsing fails
        """
        if value is None:
            return None
        
        if isinstance(value, datetime):
            return self._to_utc(value)
        
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
        
        if not isinstance(value, str):
            return None
        
        date_str = value.strip()
        if not date_str:
            return None
        
        # ISO timestamps such as 2027-01-31T18:00:00Z
        try:
            return self._to_utc(datetime.fromisoformat(date_str.replace("Z", "+00:00")))
        except ValueError:
            pass
        
        # Remove ordinal suffixes like "st", "nd", "rd", "th"
        date_str = re.sub(r'(\d+)(st|nd|rd|th)', r'\1', date_str)
        
        for fmt in self.DATE_FORMATS:
            try:
                return datetime.strptime(date_str, fmt).replace(tzinfo=timezone.utc)
            except ValueError:
                continue
        
        logger.debug(f"Could not parse date: {value!r}")
        return None
    
    def _to_utc(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
