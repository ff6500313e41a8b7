"""Test concurrent genre resolution"""

import asyncio
from types import MappingProxyType
from unittest.mock import patch

import pytest

from genre_tagger.catalog.models import GenreResolution, GenreResult, TrackArtists, merge_genres
from genre_tagger.catalog.resolver import (
    ResolvePolicy,
    batch_track_ids,
    calculate_backoff,
    resolve_all,
    resolve_track_artists,
    start_delay,
)
from genre_tagger.core.config import ResolverConfig
from genre_tagger.core.exceptions import (
    CatalogAuthError,
    CatalogNotFoundError,
    CatalogRateLimitError,
    CatalogTransportError,
)

# No waiting in tests
FAST = ResolvePolicy(max_retries=2, base_delay=0.0, max_delay=0.0, jitter_ms_per_identifier=0)


class TestGenreResult:
    """Test GenreResult and GenreResolution"""

    def test_resolved_deduplicates_in_order(self):
        result = GenreResult.resolved("x", ["rock", "pop", "rock", " pop ", "indie"])
        assert result.genres == ("rock", "pop", "indie")
        assert result.tag_value == "rock,pop,indie"
        assert not result.failed

    def test_failure(self):
        result = GenreResult.failure("x", "gave up")
        assert result.failed
        assert result.genres == ()

    def test_resolution_is_read_only(self):
        resolution = GenreResolution([GenreResult.resolved("x", ["rock"])])

        assert isinstance(resolution._results, MappingProxyType)
        with pytest.raises(TypeError):
            resolution._results["y"] = GenreResult.resolved("y", [])
        assert resolution.get("y") is None
        assert resolution["x"].tag_value == "rock"


class TestScheduling:
    """Test jitter and backoff calculations"""

    def test_start_delay_window_scales_with_identifiers(self):
        policy = ResolvePolicy(jitter_ms_per_identifier=10)
        with patch("genre_tagger.catalog.resolver.random.uniform", side_effect=lambda a, b: b) as uniform:
            assert start_delay(50, policy) == pytest.approx(0.5)
        uniform.assert_called_once_with(0, 500)

    def test_start_delay_within_window(self):
        policy = ResolvePolicy(jitter_ms_per_identifier=10)
        for _ in range(100):
            assert 0 <= start_delay(3, policy) <= 0.03

    def test_start_delay_zero_window(self):
        assert start_delay(10, FAST) == 0.0

    def test_backoff_grows_and_caps(self):
        policy = ResolvePolicy(base_delay=1.0, max_delay=8.0)
        with patch("genre_tagger.catalog.resolver.random.random", return_value=0.5):
            delays = [calculate_backoff(attempt, policy) for attempt in range(6)]
        assert delays == [1.0, 2.0, 4.0, 8.0, 8.0, 8.0]

    def test_backoff_respects_retry_after(self):
        policy = ResolvePolicy(base_delay=1.0, max_delay=8.0)
        assert calculate_backoff(0, policy, retry_after=20.0) >= 20.0

    def test_policy_from_config(self):
        config = ResolverConfig(max_retries=7, base_delay=0.5, max_delay=9.0, jitter_ms_per_identifier=3)
        policy = ResolvePolicy.from_config(config)
        assert policy == ResolvePolicy(max_retries=7, base_delay=0.5, max_delay=9.0, jitter_ms_per_identifier=3)


class TestResolveAll:
    """Test resolve_all()"""

    @pytest.mark.asyncio
    async def test_one_call_per_distinct_artist(self, fake_catalog):
        catalog = fake_catalog({"x": ["rock", "pop"], "y": []})

        resolution = await resolve_all(catalog, ["x", "y", "x", "x"], FAST)

        assert sorted(catalog.calls) == ["x", "y"]
        assert list(resolution) == ["x", "y"]
        assert resolution["x"].tag_value == "rock,pop"
        assert resolution["y"].genres == ()

    @pytest.mark.asyncio
    async def test_not_found_resolves_to_no_genres(self, fake_catalog):
        resolution = await resolve_all(fake_catalog(), ["ghost"], FAST)

        assert not resolution["ghost"].failed
        assert resolution["ghost"].genres == ()
        assert resolution.empty_count == 1

    @pytest.mark.asyncio
    async def test_transient_errors_retried(self, fake_catalog):
        catalog = fake_catalog({
            "x": [CatalogRateLimitError("slow down"), CatalogTransportError("reset"), ["rock"]],
        })

        resolution = await resolve_all(catalog, ["x"], FAST)

        assert catalog.calls == ["x", "x", "x"]
        assert resolution["x"].genres == ("rock",)

    @pytest.mark.asyncio
    async def test_rate_limit_exhaustion_isolated(self, fake_catalog):
        catalog = fake_catalog({
            "x": CatalogRateLimitError("slow down"),
            "y": ["jazz"],
        })

        resolution = await resolve_all(catalog, ["x", "y"], FAST)

        assert catalog.calls.count("x") == FAST.max_retries + 1
        assert resolution["x"].failed
        assert "3 attempts" in resolution["x"].error
        assert resolution["y"].genres == ("jazz",)
        assert resolution.failed_count == 1

    @pytest.mark.asyncio
    async def test_zero_retries(self, fake_catalog):
        catalog = fake_catalog({"x": CatalogTransportError("down")})
        policy = ResolvePolicy(max_retries=0, base_delay=0.0, max_delay=0.0, jitter_ms_per_identifier=0)

        resolution = await resolve_all(catalog, ["x"], policy)

        assert catalog.calls == ["x"]
        assert resolution["x"].failed

    @pytest.mark.asyncio
    async def test_auth_failure_cancels_outstanding(self):
        cancelled = []

        class SlowCatalog:
            async def resolve_genres(self, artist_id):
                if artist_id == "bad":
                    raise CatalogAuthError("token rejected")
                try:
                    await asyncio.sleep(10)
                except asyncio.CancelledError:
                    cancelled.append(artist_id)
                    raise
                return ["rock"]

        with pytest.raises(CatalogAuthError):
            await resolve_all(SlowCatalog(), ["a", "bad", "b"], FAST)

        assert sorted(cancelled) == ["a", "b"]

    @pytest.mark.asyncio
    async def test_unexpected_error_isolated(self, fake_catalog):
        catalog = fake_catalog({"x": RuntimeError("boom"), "y": ["pop"]})

        resolution = await resolve_all(catalog, ["x", "y"], FAST)

        assert resolution["x"].failed
        assert "boom" in resolution["x"].error
        assert resolution["y"].genres == ("pop",)

    @pytest.mark.asyncio
    async def test_empty_input(self, fake_catalog):
        catalog = fake_catalog()
        resolution = await resolve_all(catalog, [], FAST)
        assert len(resolution) == 0
        assert catalog.calls == []

    @pytest.mark.asyncio
    async def test_progress_updated(self, fake_catalog):
        class Progress:
            def __init__(self):
                self.updates = []

            def update(self, failed, empty=False):
                self.updates.append((failed, empty))

        progress = Progress()
        catalog = fake_catalog({"x": ["rock"], "y": [], "z": CatalogTransportError("down")})

        await resolve_all(catalog, ["x", "y", "z"], FAST, progress)

        assert sorted(progress.updates) == [(False, False), (False, True), (True, True)]


class TestMergeGenres:
    """Test merge_genres() and TrackArtists"""

    def test_union_in_artist_order(self):
        results = [
            GenreResult.resolved("x", ["rock", "pop"]),
            GenreResult.resolved("y", []),
            GenreResult.resolved("z", ["pop", "rap"]),
        ]
        assert merge_genres(results) == ("rock", "pop", "rap")

    def test_no_results(self):
        assert merge_genres([]) == ()

    def test_track_artists_deduplicated(self):
        assert TrackArtists.resolved("t1", ["x", "y", "x"]).artist_ids == ("x", "y")
        assert TrackArtists.failure("t1", "gave up").failed


class TestResolveTrackArtists:
    """Test batch_track_ids() and resolve_track_artists()"""

    def test_batches_of_fifty(self):
        track_ids = [f"t{i}" for i in range(120)] + ["t0"]

        batches = batch_track_ids(track_ids)

        assert [len(batch) for batch in batches] == [50, 50, 20]
        assert batches[0][0] == "t0" and batches[2][-1] == "t119"

    @pytest.mark.asyncio
    async def test_tracks_resolved_in_batches(self, fake_catalog):
        tracks = {f"t{i}": [f"a{i % 3}"] for i in range(60)}
        catalog = fake_catalog(tracks=tracks)

        lookup = await resolve_track_artists(catalog, list(tracks) + ["t1"], FAST)

        assert [len(batch) for batch in catalog.track_calls] == [50, 10]
        assert list(lookup) == list(tracks)
        assert lookup["t4"].artist_ids == ("a1",)
        with pytest.raises(TypeError):
            lookup["t99"] = TrackArtists.resolved("t99", [])

    @pytest.mark.asyncio
    async def test_unknown_track_has_no_artists(self, fake_catalog):
        lookup = await resolve_track_artists(fake_catalog(tracks={}), ["ghost"], FAST)

        assert not lookup["ghost"].failed
        assert lookup["ghost"].artist_ids == ()

    @pytest.mark.asyncio
    async def test_rejected_batch_has_no_artists(self, fake_catalog):
        catalog = fake_catalog(tracks={"bad": CatalogNotFoundError("invalid id")})

        lookup = await resolve_track_artists(catalog, ["bad"], FAST)

        assert catalog.track_calls == [["bad"]]
        assert lookup["bad"].artist_ids == ()
        assert not lookup["bad"].failed

    @pytest.mark.asyncio
    async def test_batch_failure_after_retries(self, fake_catalog):
        catalog = fake_catalog(tracks={"t1": CatalogRateLimitError("slow down"), "t2": ["x"]})

        lookup = await resolve_track_artists(catalog, ["t1", "t2"], FAST)

        assert len(catalog.track_calls) == FAST.max_retries + 1
        assert lookup["t1"].failed and lookup["t2"].failed
        assert "3 attempts" in lookup["t1"].error

    @pytest.mark.asyncio
    async def test_auth_failure_propagates(self, fake_catalog):
        catalog = fake_catalog(tracks={"t1": CatalogAuthError("token rejected")})

        with pytest.raises(CatalogAuthError):
            await resolve_track_artists(catalog, ["t1"], FAST)

    @pytest.mark.asyncio
    async def test_empty_input(self, fake_catalog):
        catalog = fake_catalog()
        assert len(await resolve_track_artists(catalog, [], FAST)) == 0
        assert catalog.track_calls == []
