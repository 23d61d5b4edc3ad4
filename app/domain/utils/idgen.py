import secrets
import string

from ulid import ULID

STREAM_KEY_PREFIX = "sk_"
STREAM_KEY_LENGTH = 32
_STREAM_KEY_ALPHABET = string.ascii_letters + string.digits


def new_ulid(prefix: str | None = None) -> str:
    value = str(ULID()).lower()
    return f"{prefix}{value}" if prefix else value


def new_stream_id() -> str:
    return new_ulid("st_")


def new_recording_id() -> str:
    return new_ulid("rec_")


def recording_id_for_asset(asset_id: str) -> str:
    """Deterministic id for recordings synthesized from an unmatched provider asset."""
    return f"rec_asset_{asset_id}"


def new_join_id() -> str:
    return new_ulid("vj_")


def new_playback_session_id() -> str:
    return new_ulid("pv_")


def new_anonymous_viewer_id() -> str:
    return new_ulid("anon_")


def new_webhook_audit_id() -> str:
    return new_ulid("wh_")


def new_stream_key() -> str:
    """Ingest credential: fixed-length alphanumeric token from the OS CSPRNG."""
    token = "".join(secrets.choice(_STREAM_KEY_ALPHABET) for _ in range(STREAM_KEY_LENGTH))
    return f"{STREAM_KEY_PREFIX}{token}"


def recording_id_for_stream(stream_id: str) -> str:
    """Deterministic id for the recording of a stream, so repeated hand-offs collide."""
    return f"rec_{stream_id}"
