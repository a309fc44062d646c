"""
auth/directory.py -- Credential check by LDAP simple bind.

The directory is the only source of truth for who may open the door: a user
is authenticated if and only if a simple bind as that user succeeds.

Security design decisions:
  Username escaping: the username is escaped as an RDN value before it is
       substituted into BIND_DN, so "admin,ou=x" cannot bind as another entry.

  Empty passwords: rejected locally. Most directories treat a simple bind
       with a DN and an empty password as an anonymous bind and report success.

  Passwords never appear in log records or exception messages emitted here.

  One connection per call: opened, bound, and unbound before verify() returns,
       whatever the outcome. No pooling, no reuse, nothing held between requests.

Outcome mapping:
  Server/Connection construction fails, open() fails, or the socket breaks
       during bind  -> AuthResult.TRANSPORT_ERROR  (engine answers LDAPInit)
  bind() returns False or raises a non-transport LDAPException
                    -> AuthResult.INVALID_CREDENTIALS
  bind() returns True -> AuthResult.SUCCESS

Layer rule: no imports from door/ or notify/. Import from core/ is allowed.
"""

from __future__ import annotations

import logging

from ldap3 import AUTO_BIND_NONE, NONE, SIMPLE, Connection, Server
from ldap3.core.exceptions import LDAPCommunicationError, LDAPException
from ldap3.utils.dn import escape_rdn

from core.config import Settings
from core.models import AuthResult

logger = logging.getLogger("doorlockd.directory")


class DirectoryAuthenticator:
    """Verify username/password pairs against an LDAP directory.

    Args:
        uri:             Directory endpoint, e.g. "ldaps://ldap.example.org".
        bind_dn:         DN template with exactly one %s for the username.
        version:         LDAP protocol version (3 unless the server is ancient).
        timeout_seconds: Applied to both connect and receive.
    """

    def __init__(self, uri: str, bind_dn: str, version: int = 3, timeout_seconds: float = 5.0) -> None:
        self.uri = uri
        self.bind_dn = bind_dn
        self.version = version
        self.timeout_seconds = timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> DirectoryAuthenticator:
        return cls(
            uri=settings.ldap_uri,
            bind_dn=settings.bind_dn,
            version=settings.ldap_version,
            timeout_seconds=settings.ldap_timeout_seconds,
        )

    def user_dn(self, user: str) -> str:
        return self.bind_dn % escape_rdn(user)

    def verify(self, user: str, password: str) -> AuthResult:
        """Attempt a simple bind as user. Never raises."""
        logger.info('Trying to authenticate as user "%s"', user)

        if not password:
            logger.error('Credential check for user "%s" failed: empty password', user)
            return AuthResult.INVALID_CREDENTIALS

        try:
            server = Server(self.uri, get_info=NONE, connect_timeout=self.timeout_seconds)
            conn = Connection(
                server,
                user=self.user_dn(user),
                password=password,
                authentication=SIMPLE,
                version=self.version,
                auto_bind=AUTO_BIND_NONE,
                read_only=True,
                receive_timeout=self.timeout_seconds,
                raise_exceptions=False,
            )
        except LDAPException as e:
            logger.error("LDAP initialize error for %s: %s", self.uri, e)
            return AuthResult.TRANSPORT_ERROR

        try:
            return self._bind(conn, user)
        finally:
            self._release(conn)

    def _bind(self, conn: Connection, user: str) -> AuthResult:
        try:
            conn.open()
        except LDAPException as e:
            logger.error("LDAP connection to %s failed: %s", self.uri, e)
            return AuthResult.TRANSPORT_ERROR

        try:
            bound = conn.bind()
        except LDAPCommunicationError as e:
            logger.error("LDAP connection to %s lost during bind: %s", self.uri, e)
            return AuthResult.TRANSPORT_ERROR
        except LDAPException as e:
            logger.error('Credential check for user "%s" failed: %s', user, e)
            return AuthResult.INVALID_CREDENTIALS

        if not bound:
            description = (conn.result or {}).get("description", "bind rejected")
            logger.error('Credential check for user "%s" failed: %s', user, description)
            return AuthResult.INVALID_CREDENTIALS

        logger.info('User "%s" successfully authenticated', user)
        return AuthResult.SUCCESS

    def _release(self, conn: Connection) -> None:
        try:
            conn.unbind()
        except LDAPException as e:
            logger.debug("LDAP unbind failed: %s", e)
