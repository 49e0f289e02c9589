"""
Authorization callback state machine.

Start -> ProviderDenied | StateMissing | CookieUnreadable | StateMismatch
Start -> Exchanging -> ExchangeFailed
Exchanging -> Exchanged -> ProfileFetchFailed
Exchanged -> ProfileFetched -> TracksFetchFailed | TracksFetched

Each step needs the previous step's output, so the provider calls run strictly
in sequence. The flow has no HTTP dependency: it takes the query parameters
and cookies of the callback request and returns an outcome that the route
layer turns into a response.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Mapping, Optional

from spotify_gateway.api.schemas.spotify import SavedTracksPage, SavedTracksQuery, UserProfile
from spotify_gateway.core.errors import APIRequestError, CookieReadError, DecodeError, ExchangeError
from spotify_gateway.infra.metrics import callback_outcomes_total
from spotify_gateway.infra.oauth_state import StateCookieStore, states_match
from spotify_gateway.infra.spotify_api import SpotifyAPIClient
from spotify_gateway.services.spotify_oauth import SpotifyOAuthClient

logger = logging.getLogger(__name__)

CALLBACK_TRACKS_QUERY = SavedTracksQuery(limit=50, offset=0, market="us")


class CallbackState(str, Enum):
    START = "Start"
    PROVIDER_DENIED = "ProviderDenied"
    STATE_MISSING = "StateMissing"
    COOKIE_UNREADABLE = "CookieUnreadable"
    STATE_MISMATCH = "StateMismatch"
    EXCHANGING = "Exchanging"
    EXCHANGE_FAILED = "ExchangeFailed"
    EXCHANGED = "Exchanged"
    PROFILE_FETCH_FAILED = "ProfileFetchFailed"
    PROFILE_FETCHED = "ProfileFetched"
    TRACKS_FETCH_FAILED = "TracksFetchFailed"
    TRACKS_FETCHED = "TracksFetched"


TERMINAL_STATES = frozenset({
    CallbackState.PROVIDER_DENIED,
    CallbackState.STATE_MISSING,
    CallbackState.COOKIE_UNREADABLE,
    CallbackState.STATE_MISMATCH,
    CallbackState.EXCHANGE_FAILED,
    CallbackState.PROFILE_FETCH_FAILED,
    CallbackState.TRACKS_FETCH_FAILED,
    CallbackState.TRACKS_FETCHED,
})


@dataclass(frozen=True)
class CallbackRequest:
    """The parts of the callback request the flow looks at."""

    query_params: Mapping[str, str]
    cookies: Mapping[str, str]
    request_id: str = "unknown"


@dataclass
class CallbackOutcome:
    """Result of one run of the callback flow."""

    state: CallbackState = CallbackState.START
    history: List[CallbackState] = field(default_factory=lambda: [CallbackState.START])
    cookie_consumed: bool = False
    error: Optional[str] = None
    provider_error: Optional[str] = None
    profile: Optional[UserProfile] = None
    saved_tracks: Optional[SavedTracksPage] = None

    @property
    def succeeded(self) -> bool:
        return self.state is CallbackState.TRACKS_FETCHED


class CallbackFlow:
    """Drives one callback from the provider redirect to the fetched data."""

    def __init__(
        self,
        oauth_client: SpotifyOAuthClient,
        api_client: SpotifyAPIClient,
        state_store: StateCookieStore,
        tracks_query: SavedTracksQuery = CALLBACK_TRACKS_QUERY,
    ):
        self.oauth_client = oauth_client
        self.api_client = api_client
        self.state_store = state_store
        self.tracks_query = tracks_query

    def _advance(self, outcome: CallbackOutcome, state: CallbackState, request_id: str) -> None:
        outcome.state = state
        outcome.history.append(state)
        logger.info(f"[{request_id}] OAuth callback reached {state.value}")
        if state in TERMINAL_STATES:
            callback_outcomes_total.labels(state=state.value).inc()

    async def run(self, request: CallbackRequest) -> CallbackOutcome:
        """
        Run the callback state machine.

        Args:
            request: Query parameters and cookies of the callback request

        Returns:
            CallbackOutcome in a terminal state
        """
        outcome = CallbackOutcome()
        rid = request.request_id
        params = request.query_params

        provider_error = params.get("error")
        if provider_error:
            outcome.provider_error = provider_error
            logger.info(f"[{rid}] User authorization failed. Reason={provider_error}")
            self._advance(outcome, CallbackState.PROVIDER_DENIED, rid)
            return outcome

        try:
            stored_state = self.state_store.read(request.cookies)
        except CookieReadError as e:
            logger.warning(f"[{rid}] Cannot read state cookie: {e}")
            outcome.error = str(e)
            outcome.cookie_consumed = True
            self._advance(outcome, CallbackState.COOKIE_UNREADABLE, rid)
            return outcome

        if stored_state is None:
            outcome.error = "state cookie missing"
            self._advance(outcome, CallbackState.STATE_MISSING, rid)
            return outcome

        if not states_match(stored_state, params.get("state")):
            logger.warning(f"[{rid}] Invalid OAuth state, possible CSRF (state_mismatch)")
            outcome.error = "state mismatch"
            self._advance(outcome, CallbackState.STATE_MISMATCH, rid)
            return outcome

        outcome.cookie_consumed = True
        self._advance(outcome, CallbackState.EXCHANGING, rid)
        try:
            token = await self.oauth_client.exchange(params.get("code", ""))
        except ExchangeError as e:
            logger.error(f"[{rid}] Error converting auth code into token: {e}")
            outcome.error = str(e)
            self._advance(outcome, CallbackState.EXCHANGE_FAILED, rid)
            return outcome
        self._advance(outcome, CallbackState.EXCHANGED, rid)

        try:
            outcome.profile = await self.api_client.fetch_user_profile(token)
        except (APIRequestError, DecodeError) as e:
            outcome.error = str(e)
            self._advance(outcome, CallbackState.PROFILE_FETCH_FAILED, rid)
            return outcome
        self._advance(outcome, CallbackState.PROFILE_FETCHED, rid)
        logger.debug(f"[{rid}] Profile: {outcome.profile.model_dump_json()}")

        try:
            outcome.saved_tracks = await self.api_client.fetch_saved_tracks(token, self.tracks_query)
        except (APIRequestError, DecodeError) as e:
            outcome.error = str(e)
            self._advance(outcome, CallbackState.TRACKS_FETCH_FAILED, rid)
            return outcome
        self._advance(outcome, CallbackState.TRACKS_FETCHED, rid)
        logger.debug(f"[{rid}] Saved tracks: {outcome.saved_tracks.model_dump_json(indent=2)}")

        return outcome
