"""
Account/session provider and persisted local state.

SessionProvider talks to the hosted auth endpoint (GoTrue REST API) with requests.
LocalState keeps the only things persisted on this machine: the current session
tokens and the user's preferences (language, local budget limits).
"""

import json
import logging
import os
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import requests

from omnitrack.bus.events import bus as default_bus, EVENT_SESSION_CHANGED, EVENT_LANGUAGE_CHANGED
from omnitrack.config import config
from omnitrack.models import LANGUAGES, Session

logger = logging.getLogger(__name__)

_SESSION_FILE = 'session.json'
_PREFERENCES_FILE = 'preferences.json'
_PRIVATE_MODE = 0o600

# Refresh tokens this many seconds before they actually expire
_EXPIRY_MARGIN_SECONDS = 30

SIGNED_IN = 'SIGNED_IN'
SIGNED_OUT = 'SIGNED_OUT'
TOKEN_REFRESHED = 'TOKEN_REFRESHED'


class AuthError(Exception):
    """The auth endpoint rejected the request (bad credentials, expired refresh token...)."""


# =============================================================================
# LOCAL STATE
# =============================================================================

class LocalState:
    """JSON files under STATE_DIR. Missing or corrupt files read as empty."""

    def __init__(self, state_dir: Optional[Path] = None):
        self.state_dir = Path(state_dir or config.STATE_DIR)

    @property
    def session_path(self) -> Path:
        return self.state_dir / _SESSION_FILE

    @property
    def preferences_path(self) -> Path:
        return self.state_dir / _PREFERENCES_FILE

    def _read(self, path: Path) -> Dict[str, Any]:
        if not path.exists():
            return {}
        try:
            data = json.loads(path.read_text(encoding='utf-8'))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable state file {path.name}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, path: Path, data: Dict[str, Any], private: bool = False) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)
        text = json.dumps(data, indent=2, ensure_ascii=False)
        if not private:
            path.write_text(text, encoding='utf-8')
            return
        # Tokens are owner read/write only; chmod also covers a file that already existed
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _PRIVATE_MODE)
        with os.fdopen(fd, 'w', encoding='utf-8') as fh:
            fh.write(text)
        os.chmod(path, _PRIVATE_MODE)

    # Session --------------------------------------------------------------

    def load_session(self) -> Optional[Session]:
        data = self._read(self.session_path)
        if not data.get('user_id'):
            return None
        return Session(
            user_id=data['user_id'],
            access_token=data.get('access_token', ''),
            refresh_token=data.get('refresh_token', ''),
            expires_at=data.get('expires_at'),
            email=data.get('email'),
        )

    def save_session(self, session: Session) -> None:
        self._write(self.session_path, {
            'user_id': session.user_id,
            'access_token': session.access_token,
            'refresh_token': session.refresh_token,
            'expires_at': session.expires_at,
            'email': session.email,
        }, private=True)

    def clear_session(self) -> None:
        if self.session_path.exists():
            self.session_path.unlink()
            logger.debug("Session file removed")

    def clear_all(self) -> None:
        """Cold start: forget the session and every stored preference."""
        self.clear_session()
        if self.preferences_path.exists():
            self.preferences_path.unlink()
        logger.info("Local session state cleared")

    # Preferences ------------------------------------------------------------

    def get_language(self) -> str:
        language = self._read(self.preferences_path).get('language')
        if language in LANGUAGES:
            return language
        return config.DEFAULT_LANGUAGE if config.DEFAULT_LANGUAGE in LANGUAGES else 'BN'

    def set_language(self, language: str) -> None:
        if language not in LANGUAGES:
            raise ValueError(f"Unknown language '{language}'. Choose from: {', '.join(LANGUAGES)}")
        prefs = self._read(self.preferences_path)
        prefs['language'] = language
        self._write(self.preferences_path, prefs)
        default_bus.emit(EVENT_LANGUAGE_CHANGED, {'language': language})

    def toggle_language(self) -> str:
        language = 'BN' if self.get_language() == 'EN' else 'EN'
        self.set_language(language)
        return language

    def get_budget_limits(self) -> Dict[str, float]:
        limits = self._read(self.preferences_path).get('budget_limits') or {}
        return {str(k): float(v) for k, v in limits.items()}

    def set_budget_limits(self, limits: Dict[str, float]) -> None:
        prefs = self._read(self.preferences_path)
        prefs['budget_limits'] = dict(limits)
        self._write(self.preferences_path, prefs)


# =============================================================================
# SESSION PROVIDER
# =============================================================================

def _session_from_payload(payload: Dict[str, Any]) -> Session:
    try:
        user = payload['user']
        expires_at = payload.get('expires_at') or time.time() + float(payload.get('expires_in', 3600))
        return Session(
            user_id=str(user['id']),
            access_token=payload['access_token'],
            refresh_token=payload.get('refresh_token', ''),
            expires_at=float(expires_at),
            email=user.get('email'),
        )
    except (KeyError, TypeError) as e:
        raise AuthError(f"Unexpected auth response format: {e}")


class SessionProvider:
    """
    getCurrentSession / onSessionChange / signOut over the hosted auth API.
    Session changes are broadcast on the event bus as EVENT_SESSION_CHANGED with
    {'event': SIGNED_IN | SIGNED_OUT | TOKEN_REFRESHED, 'session': Session | None}.
    """

    def __init__(self, local_state: Optional[LocalState] = None, base_url: Optional[str] = None,
                 anon_key: Optional[str] = None, event_bus=None):
        self.local_state = local_state or LocalState()
        self.base_url = (base_url if base_url is not None else config.SUPABASE_URL).rstrip('/')
        self.anon_key = anon_key if anon_key is not None else config.SUPABASE_ANON_KEY
        self.bus = event_bus or default_bus

    def _post(self, path: str, payload: Dict[str, Any], token: Optional[str] = None) -> Dict[str, Any]:
        if not self.base_url:
            raise ValueError("SUPABASE_URL not set in environment")

        url = f"{self.base_url}/auth/v1/{path}"
        headers = {
            'apikey': self.anon_key,
            'Authorization': f"Bearer {token or self.anon_key}",
            'Content-Type': 'application/json',
        }
        logger.debug(f"POST auth/v1/{path.split('?')[0]}")
        response = requests.post(url, json=payload, headers=headers, timeout=(10, 30))

        if response.status_code in (400, 401, 403, 422):
            try:
                body = response.json()
            except ValueError:
                body = {}
            message = body.get('error_description') or body.get('msg') or body.get('message') or response.reason
            raise AuthError(message)
        response.raise_for_status()

        if not response.content:
            return {}
        return response.json()

    def _publish(self, event: str, session: Optional[Session]) -> None:
        self.bus.emit(EVENT_SESSION_CHANGED, {'event': event, 'session': session})

    # ---------------------------------------------------------------------------

    def get_current_session(self) -> Optional[Session]:
        """
        Return the persisted session, refreshing its tokens first if they are
        about to expire. A refresh rejected by the server signs the user out;
        network failures propagate to the caller.
        """
        session = self.local_state.load_session()
        if session is None:
            return None

        if session.expires_at and session.expires_at - _EXPIRY_MARGIN_SECONDS > time.time():
            return session

        if not session.refresh_token:
            self.local_state.clear_session()
            return None

        try:
            payload = self._post('token?grant_type=refresh_token', {'refresh_token': session.refresh_token})
        except AuthError as e:
            logger.warning(f"Session refresh rejected, signing out: {e}")
            self.local_state.clear_session()
            self._publish(SIGNED_OUT, None)
            return None

        refreshed = _session_from_payload(payload)
        self.local_state.save_session(refreshed)
        self._publish(TOKEN_REFRESHED, refreshed)
        return refreshed

    def sign_in(self, email: str, password: str) -> Session:
        payload = self._post('token?grant_type=password', {'email': email, 'password': password})
        session = _session_from_payload(payload)
        self.local_state.save_session(session)
        logger.info(f"Signed in as {session.email or session.user_id}")
        self._publish(SIGNED_IN, session)
        return session

    def sign_up(self, email: str, password: str, metadata: Optional[Dict[str, Any]] = None) -> Optional[Session]:
        """
        Register a new studio account. Returns None when the server requires
        e-mail confirmation before issuing a session.
        """
        payload = self._post('signup', {'email': email, 'password': password, 'data': metadata or {}})
        if 'access_token' not in payload:
            logger.info(f"Sign-up for {email} awaiting confirmation")
            return None
        session = _session_from_payload(payload)
        self.local_state.save_session(session)
        self._publish(SIGNED_IN, session)
        return session

    def sign_out(self) -> None:
        """Revoke the session server-side when possible; always forget it locally."""
        session = self.local_state.load_session()
        if session is not None and self.base_url:
            try:
                self._post('logout', {}, token=session.access_token)
            except (AuthError, requests.exceptions.RequestException) as e:
                logger.warning(f"Logout request failed, clearing local session anyway: {e}")
        self.local_state.clear_session()
        logger.info("Signed out")
        self._publish(SIGNED_OUT, None)

    def on_session_change(self, callback: Callable[[Dict[str, Any]], None]) -> Callable[[], None]:
        """Subscribe to session changes. Returns an unsubscribe function."""
        self.bus.on(EVENT_SESSION_CHANGED, callback)
        return lambda: self.bus.off(EVENT_SESSION_CHANGED, callback)
