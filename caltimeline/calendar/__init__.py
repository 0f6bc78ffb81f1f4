"""iCalendar interpretation: text decoding, date/time values, series expansion."""
