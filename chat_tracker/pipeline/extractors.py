"""Tracker extraction from raw LLM output.

The model is asked to wrap its tracker in <tracker>...</tracker>. Only the
first block is read. Any failure (no block, unreadable payload, a payload that
is not a mapping or does not fit the definition, no tracked fields left) is
logged once and yields None. Malformed output is an expected outcome, never
an exception for the caller.
"""

import logging
import re

from chat_tracker.fields import check_tracker_shape, prune_tracker
from chat_tracker.formats import TrackerParseError, get_format
from chat_tracker.models import IncludeFields, OutputFormat, TrackerDefinition, TrackerRecord

logger = logging.getLogger(__name__)

_TRACKER_RE = re.compile(r"<tracker>(.*?)</tracker>", re.DOTALL)


def strip_tracker_blocks(text: str) -> str:
    """Remove every embedded <tracker> block from a message body."""
    return _TRACKER_RE.sub("", text)


def parse_tracker_output(
    text: str,
    definition: TrackerDefinition | None = None,
    include_fields: IncludeFields = IncludeFields.ALL,
    output_format: OutputFormat = OutputFormat.JSON,
) -> TrackerRecord | None:
    """Parse the first <tracker> block of LLM output into a record.

    When a definition is given, keys outside the filtered definition are dropped
    and the remaining values must fit their field types.
    """
    match = _TRACKER_RE.search(text or "")
    if not match:
        logger.error("Failed to parse tracker: no <tracker> block in %r", text)
        return None

    payload = match.group(1).strip()
    try:
        record = get_format(output_format).from_wire_text(payload)
    except TrackerParseError as e:
        logger.error("Failed to parse tracker: %r (%s)", payload, e)
        return None

    if definition is not None:
        record = prune_tracker(record, definition, include_fields)
        try:
            check_tracker_shape(record, definition, include_fields)
        except TypeError as e:
            logger.error("Failed to parse tracker: %r (%s)", payload, e)
            return None
    if not record:
        logger.error("Failed to parse tracker: no tracked fields in %r", payload)
        return None
    logger.debug("Parsed tracker: %s", record)
    return record
