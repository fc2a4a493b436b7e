"""Thin endpoint wrappers built on the Session call sequence.

These cover the flickr.test.* methods and the common "call a method and
read one string back" pattern. Wrappers for other endpoints follow the same
shape: begin, add parameters, finish, build_and_sign, invoke.
"""

from __future__ import annotations

import logging

from flickr_rest.session import Session

logger = logging.getLogger(__name__)


def call_get_one_string_field(
    session: Session,
    method_name: str,
    path: str,
    key: str | None = None,
    value: str | None = None,
) -> str | None:
    """Call *method_name* with at most one parameter and return the text at *path*.

    Args:
        session: Session to call through.
        method_name: Flickr method, e.g. "flickr.urls.getUserProfile".
        path: ElementTree path relative to the <rsp> root, e.g. "user/username".
            A path starting with "@" reads an attribute of the first child
            of the root instead, e.g. "@url".
        key: Optional parameter name.
        value: Value for *key*.

    Returns:
        The text found, or None when the call failed or nothing matched.
    """
    session.begin()
    if key and value is not None:
        session.add(key, value)
    session.finish()

    if session.build_and_sign(method_name) is None:
        return None
    result = session.invoke()
    if result.document is None:
        return None

    if path.startswith("@"):
        first = next(iter(result.document), None)
        return None if first is None else first.get(path[1:])
    return result.document.findtext(path)


def echo(session: Session, key: str, value: str) -> bool:
    """flickr.test.echo: the server echoes KEY=VALUE back. True on success."""
    session.begin()
    session.add(key, value)
    session.finish()

    if session.build_and_sign("flickr.test.echo") is None:
        return False
    result = session.invoke()
    if result.ok:
        logger.info("Flickr echo returned %d bytes", session.total_bytes)
    return result.ok


def login(session: Session) -> str | None:
    """flickr.test.login: the username of the authenticated caller."""
    return call_get_one_string_field(session, "flickr.test.login", "user/username")


def null(session: Session) -> bool:
    """flickr.test.null: an authenticated no-op. True on success."""
    session.begin()
    session.finish()
    if session.build_and_sign("flickr.test.null") is None:
        return False
    return session.invoke().ok
