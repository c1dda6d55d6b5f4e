"""Subject and payload sanitization utilities."""

import re

from visualperfect.constants import MAX_SUBJECT_LENGTH
from visualperfect.exceptions import InvalidSubject

# Storybook story ids look like "example-button--primary"
_SUBJECT_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def validate_subject(subject: str | None) -> str:
    """Return the stripped subject or raise InvalidSubject.

    Subjects double as file names in the baseline store, so anything that
    could address a path outside of it is rejected here, before any I/O.
    """
    if subject is None:
        raise InvalidSubject("subject is required")
    subject = subject.strip()
    if not subject:
        raise InvalidSubject("subject is required")
    if len(subject) > MAX_SUBJECT_LENGTH:
        msg = f"subject exceeds {MAX_SUBJECT_LENGTH} characters"
        raise InvalidSubject(msg)
    if ".." in subject or not _SUBJECT_RE.match(subject):
        msg = f"subject contains unsupported characters: {subject!r}"
        raise InvalidSubject(msg)
    # "{subject}.diff.png" is reserved for diff artifacts
    if subject.lower().endswith(".diff"):
        msg = f"subject must not end with '.diff': {subject!r}"
        raise InvalidSubject(msg)
    return subject

