"""
Session state and controller.

SessionState is an immutable snapshot; every change goes through a pure
transition function returning a new snapshot. SessionController owns the one
live snapshot, runs the generate/refine requests, and notifies subscribers
(the HTTP API and the REPL) after each committed transition.

Phases:
    NO_CREDENTIAL -> IDLE             credential discovered or supplied
    IDLE -> GENERATING -> IDLE        generate (auth failure -> NO_CREDENTIAL)
    IDLE -> REFINING -> IDLE          refine   (auth failure -> NO_CREDENTIAL)

At most one request is in flight. The busy check and the transition into
GENERATING/REFINING happen before the first await, so a second attempt on the
same event loop always sees the gate closed and is ignored.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional, Union

from .aspect import DEFAULT_ASPECT_RATIO, AspectRatio, resolve_closest
from .config import CardSwapConfig, get_config
from .credentials import (
    CredentialProvider,
    HostKeySelector,
    KeyValueStore,
    select_credential_provider,
)
from .errors import (
    EmptyResponseError,
    InvalidCredentialError,
    ModelRefusalError,
    UndecodableImageError,
    UnreadableFileError,
    is_authentication_failure,
)
from .export import save_png
from .gemini_native import GenerationClient, RefinementClient
from .ingest import ingest_bytes, ingest_drop, ingest_file
from .messages import message
from .models import GenerationRequest, ImageAsset, RefinementRequest

log = logging.getLogger("cardswap.session")


class Phase(str, Enum):
    NO_CREDENTIAL = "no_credential"
    IDLE = "idle"
    GENERATING = "generating"
    REFINING = "refining"


class Activity(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    REFINING = "refining"


class Slot(str, Enum):
    REFERENCE = "reference"
    CHARACTER = "character"


class ErrorKind(str, Enum):
    CREDENTIAL_MISSING = "credential_missing"
    INVALID_CREDENTIAL = "invalid_credential"
    AUTHENTICATION = "authentication"
    MODEL_REFUSAL = "model_refusal"
    EMPTY_RESPONSE = "empty_response"
    REMOTE_FAILURE = "remote_failure"
    UNREADABLE_FILE = "unreadable_file"
    UNDECODABLE_IMAGE = "undecodable_image"
    INPUT_REJECTED = "input_rejected"


@dataclass(frozen=True)
class SessionError:
    kind: ErrorKind
    message: str
    detail: Optional[str] = None

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message, "detail": self.detail}


@dataclass(frozen=True)
class SessionState:
    credential_present: bool = False
    credential_mode: str = "manual"
    activity: Activity = Activity.IDLE
    reference: Optional[ImageAsset] = None
    character: Optional[ImageAsset] = None
    character_name: str = ""
    user_instructions: str = ""
    refinement_prompt: str = ""
    aspect_ratio: AspectRatio = DEFAULT_ASPECT_RATIO
    generated_image: Optional[str] = None
    error: Optional[SessionError] = None

    @property
    def phase(self) -> Phase:
        if self.activity == Activity.GENERATING:
            return Phase.GENERATING
        if self.activity == Activity.REFINING:
            return Phase.REFINING
        return Phase.IDLE if self.credential_present else Phase.NO_CREDENTIAL

    @property
    def busy(self) -> bool:
        return self.activity != Activity.IDLE

    @property
    def can_generate(self) -> bool:
        return not self.busy and self.reference is not None and self.character is not None

    @property
    def can_refine(self) -> bool:
        return (
            not self.busy
            and self.generated_image is not None
            and bool(self.refinement_prompt.strip())
        )

    def image(self, slot: Slot) -> Optional[ImageAsset]:
        return self.reference if slot == Slot.REFERENCE else self.character

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "busy": self.busy,
            "credential_present": self.credential_present,
            "credential_mode": self.credential_mode,
            "reference": self.reference.describe() if self.reference else None,
            "character": self.character.describe() if self.character else None,
            "character_name": self.character_name,
            "user_instructions": self.user_instructions,
            "refinement_prompt": self.refinement_prompt,
            "aspect_ratio": self.aspect_ratio.value,
            "has_generated_image": self.generated_image is not None,
            "error": self.error.to_dict() if self.error else None,
        }


# ── Pure transitions ─────────────────────────────────────────────

def credential_accepted(state: SessionState, mode: str) -> SessionState:
    return replace(state, credential_present=True, credential_mode=mode, error=None)


def credential_revoked(state: SessionState, error: Optional[SessionError] = None) -> SessionState:
    return replace(state, credential_present=False, error=error)


def with_image(state: SessionState, slot: Slot, asset: Optional[ImageAsset]) -> SessionState:
    """Put (or remove) an input image; a new reference re-derives the aspect ratio."""
    if slot == Slot.REFERENCE:
        if asset is None:
            return replace(state, reference=None)
        return replace(
            state,
            reference=asset,
            aspect_ratio=resolve_closest(asset.width, asset.height),
            error=None,
        )
    return replace(state, character=asset, error=None if asset else state.error)


def with_inputs(
    state: SessionState,
    character_name: Optional[str] = None,
    user_instructions: Optional[str] = None,
    refinement_prompt: Optional[str] = None,
) -> SessionState:
    changes = {}
    if character_name is not None:
        changes["character_name"] = character_name
    if user_instructions is not None:
        changes["user_instructions"] = user_instructions
    if refinement_prompt is not None:
        changes["refinement_prompt"] = refinement_prompt
    return replace(state, **changes) if changes else state


def with_error(state: SessionState, error: Optional[SessionError]) -> SessionState:
    return replace(state, error=error)


def begin_generation(state: SessionState) -> SessionState:
    """Clear stale output and the refinement draft before the request starts."""
    return replace(
        state,
        activity=Activity.GENERATING,
        generated_image=None,
        refinement_prompt="",
        error=None,
    )


def generation_succeeded(state: SessionState, image: str) -> SessionState:
    return replace(state, activity=Activity.IDLE, generated_image=image, error=None)


def begin_refinement(state: SessionState, instruction: str) -> SessionState:
    return replace(
        state,
        activity=Activity.REFINING,
        refinement_prompt=instruction,
        error=None,
    )


def refinement_succeeded(state: SessionState, image: str) -> SessionState:
    return replace(
        state,
        activity=Activity.IDLE,
        generated_image=image,
        refinement_prompt="",
        error=None,
    )


def request_interrupted(state: SessionState) -> SessionState:
    """Reopen the busy gate after a cancelled or interrupted request; no error overlay."""
    return replace(state, activity=Activity.IDLE)


def request_failed(
    state: SessionState,
    error: SessionError,
    authentication: bool = False,
) -> SessionState:
    """Return to idle with the error overlay; authentication failures drop the credential."""
    new_state = replace(state, activity=Activity.IDLE, error=error)
    if authentication:
        new_state = replace(new_state, credential_present=False)
    return new_state


# ── Controller ───────────────────────────────────────────────────

Listener = Callable[[SessionState], None]


class SessionController:
    """Single-session, single-flight orchestration of generate and refine."""

    def __init__(
        self,
        config: Optional[CardSwapConfig] = None,
        provider: Optional[CredentialProvider] = None,
        generator: Optional[GenerationClient] = None,
        refiner: Optional[RefinementClient] = None,
        host: Optional[HostKeySelector] = None,
    ):
        self.config = config or get_config()
        if provider is None:
            store = KeyValueStore(self.config.settings_file)
            provider = select_credential_provider(
                store,
                host=host if host is not None else HostKeySelector(),
                allow_manual=self.config.allow_manual_key,
            )
        self.provider = provider
        self.generator = generator or GenerationClient(self.config)
        self.refiner = refiner or RefinementClient(self.config)
        self._credential: Optional[str] = None
        self._state = SessionState(credential_mode=provider.mode)
        self._listeners: List[Listener] = []

    # --- Observation ---

    @property
    def state(self) -> SessionState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a state listener; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, new_state: SessionState) -> SessionState:
        if new_state is self._state:
            return new_state
        self._state = new_state
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                log.exception("State listener failed")
        return new_state

    def _msg(self, key: str, **kwargs) -> str:
        return message(self.config.locale, key, **kwargs)

    def _error(self, kind: ErrorKind, key: str, detail: Optional[str] = None, **kwargs) -> SessionError:
        return SessionError(kind=kind, message=self._msg(key, **kwargs), detail=detail)

    # --- Credentials ---

    async def initialize(self) -> SessionState:
        """Discover a credential using the provider's discovery order."""
        key = await self.provider.discover()
        if key:
            self._credential = key
            log.info(f"Credential discovered ({self.provider.mode})")
            return self._commit(credential_accepted(self._state, self.provider.mode))
        log.info("No credential found; manual entry required")
        return self._commit(credential_revoked(self._state, error=self._state.error))

    def submit_manual_key(self, raw_key: str) -> SessionState:
        try:
            key = self.provider.submit(raw_key)
        except InvalidCredentialError:
            error_key = "invalid_key" if self.provider.allows_manual_entry else "manual_key_disabled"
            return self._commit(
                with_error(self._state, self._error(ErrorKind.INVALID_CREDENTIAL, error_key))
            )
        self._credential = key
        return self._commit(credential_accepted(self._state, "manual"))

    async def select_host_key(self) -> SessionState:
        key = await self.provider.select()
        if not key:
            return self._commit(
                with_error(self._state, self._error(ErrorKind.CREDENTIAL_MISSING, "key_missing"))
            )
        self._credential = key
        return self._commit(credential_accepted(self._state, self.provider.mode))

    def clear_credential(self) -> SessionState:
        """Forget the credential. Idempotent."""
        self.provider.clear()
        self._credential = None
        return self._commit(credential_revoked(self._state))

    # --- Inputs ---

    def _load(self, slot: Slot, loader: Callable[[], Optional[ImageAsset]]) -> SessionState:
        try:
            asset = loader()
        except UnreadableFileError as e:
            log.warning(f"Unreadable {slot.value} upload: {e}")
            return self._commit(
                with_error(self._state, self._error(ErrorKind.UNREADABLE_FILE, "unreadable_file", str(e)))
            )
        except UndecodableImageError as e:
            log.warning(f"Undecodable {slot.value} upload: {e}")
            return self._commit(
                with_error(self._state, self._error(ErrorKind.UNDECODABLE_IMAGE, "undecodable_image", str(e)))
            )
        if asset is None:
            return self._state
        return self._commit(with_image(self._state, Slot(slot), asset))

    def load_image(
        self,
        slot: Union[Slot, str],
        data: bytes,
        mime_type: Optional[str] = None,
        filename: Optional[str] = None,
        dropped: bool = False,
    ) -> SessionState:
        """Ingest an uploaded payload into a slot; failures leave the slot untouched."""
        slot = Slot(slot)
        if dropped:
            return self._load(slot, lambda: ingest_drop(data, mime_type, filename))
        return self._load(slot, lambda: ingest_bytes(data, mime_type, filename))

    def load_image_file(self, slot: Union[Slot, str], path: Union[str, Path]) -> SessionState:
        slot = Slot(slot)
        return self._load(slot, lambda: ingest_file(path))

    def remove_image(self, slot: Union[Slot, str]) -> SessionState:
        return self._commit(with_image(self._state, Slot(slot), None))

    def update_inputs(
        self,
        character_name: Optional[str] = None,
        user_instructions: Optional[str] = None,
        refinement_prompt: Optional[str] = None,
    ) -> SessionState:
        return self._commit(
            with_inputs(self._state, character_name, user_instructions, refinement_prompt)
        )

    # --- Requests ---

    def _failure(self, exc: Exception, fallback_key: str) -> SessionState:
        if isinstance(exc, ModelRefusalError):
            log.warning(f"Model declined to produce an image: {exc.text}")
            error = self._error(ErrorKind.MODEL_REFUSAL, "model_refusal", exc.text, text=exc.text)
            return request_failed(self._state, error)

        if isinstance(exc, EmptyResponseError):
            log.warning("Model returned neither image nor text")
            return request_failed(
                self._state, self._error(ErrorKind.EMPTY_RESPONSE, "empty_response", str(exc))
            )

        if is_authentication_failure(exc):
            log.warning(f"Credential rejected ({self.provider.mode}): {exc}")
            self.provider.on_authentication_failure()
            self._credential = None
            key = "auth_invalid_host" if self.provider.mode == "host" else "auth_invalid_manual"
            error = self._error(ErrorKind.AUTHENTICATION, key, str(exc))
            return request_failed(self._state, error, authentication=True)

        log.error(f"Request failed: {exc}", exc_info=True)
        error = SessionError(
            kind=ErrorKind.REMOTE_FAILURE,
            message=f"{self._msg(fallback_key)}\n{exc}",
            detail=str(exc),
        )
        return request_failed(self._state, error)

    async def generate(self) -> SessionState:
        state = self._state
        if state.busy:
            log.debug("Generate ignored: request already in flight")
            return state
        if state.reference is None or state.character is None:
            return self._commit(
                with_error(state, self._error(ErrorKind.INPUT_REJECTED, "inputs_missing"))
            )
        if not self._credential:
            return self._commit(
                credential_revoked(state, self._error(ErrorKind.CREDENTIAL_MISSING, "key_missing"))
            )

        request = GenerationRequest(
            reference=state.reference,
            character=state.character,
            aspect_ratio=state.aspect_ratio,
            character_name=state.character_name,
            user_instructions=state.user_instructions,
        )
        self._commit(begin_generation(state))

        try:
            image = await self.generator.generate(self._credential, request)
        except Exception as e:
            return self._commit(self._failure(e, "generate_failed"))
        except BaseException:
            log.warning("Generation interrupted")
            self._commit(request_interrupted(self._state))
            raise

        return self._commit(generation_succeeded(self._state, image))

    async def refine(self, instruction: Optional[str] = None) -> SessionState:
        state = self._state
        if state.busy:
            log.debug("Refine ignored: request already in flight")
            return state

        if instruction is None:
            instruction = state.refinement_prompt
        instruction = instruction.strip()
        if state.generated_image is None:
            return self._commit(
                with_error(state, self._error(ErrorKind.INPUT_REJECTED, "nothing_to_refine"))
            )
        if not instruction:
            return self._commit(
                with_error(state, self._error(ErrorKind.INPUT_REJECTED, "empty_instruction"))
            )
        if not self._credential:
            return self._commit(
                with_error(state, self._error(ErrorKind.CREDENTIAL_MISSING, "key_missing"))
            )

        request = RefinementRequest(
            image=state.generated_image,
            instruction=instruction,
            aspect_ratio=state.aspect_ratio,
        )
        self._commit(begin_refinement(state, instruction))

        try:
            image = await self.refiner.refine(self._credential, request)
        except Exception as e:
            return self._commit(self._failure(e, "refine_failed"))
        except BaseException:
            log.warning("Refinement interrupted")
            self._commit(request_interrupted(self._state))
            raise

        return self._commit(refinement_succeeded(self._state, image))

    # --- Output ---

    def save_generated_image(self, directory: Optional[Union[str, Path]] = None) -> Optional[Path]:
        """Write the current card as swapped-card-<ms>.png; None when nothing was generated."""
        if self._state.generated_image is None:
            return None
        return save_png(self._state.generated_image, directory or self.config.output_dir)

    def cost_display(self) -> Optional[str]:
        if not self.config.show_cost:
            return None
        return self._msg(
            "cost", yen=self.config.cost_in_yen(), usd=self.config.cost_per_image_usd
        )
