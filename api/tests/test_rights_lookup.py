from __future__ import annotations

import asyncio

import pytest

from reliefweb_rights.services.documents import Account
from reliefweb_rights.services.posting_rights import PostingRight, PrivilegedDomainPolicy, SourceRights
from reliefweb_rights.services.repository import RepositoryUnavailableError, RepositoryValidationError
from reliefweb_rights.services.rights_lookup import RightsCache, RightsLookup


def _lookup(repository, **kwargs) -> RightsLookup:
    return RightsLookup(repository, **kwargs)


def test_missing_sources_default_to_unverified(make_repository) -> None:
    repository = make_repository(user_rights={7: [SourceRights(10, job=PostingRight.TRUSTED)]})

    rights = asyncio.run(_lookup(repository).get_rights(Account(id=7), [10, 20]))

    assert rights[10].job is PostingRight.TRUSTED
    assert rights[20] == SourceRights(20)


def test_results_are_cached_per_user_and_sorted_sources(make_repository) -> None:
    repository = make_repository(user_rights={7: [SourceRights(10), SourceRights(20)]})
    lookup = _lookup(repository)

    async def scenario() -> None:
        await lookup.get_rights(Account(id=7), [10, 20])
        await lookup.get_rights(Account(id=7), [20, 10])
        await lookup.get_rights(Account(id=7), [20, 10, 10])
        await lookup.get_rights(Account(id=8), [10, 20])

    asyncio.run(scenario())

    assert repository.calls["fetch_user_posting_rights"] == 2
    assert len(lookup.cache) == 2


def test_cached_result_is_not_shared_mutable_state(make_repository) -> None:
    repository = make_repository(user_rights={7: [SourceRights(10, job=PostingRight.ALLOWED)]})
    lookup = _lookup(repository)

    first = asyncio.run(lookup.get_rights(Account(id=7), [10]))
    first.clear()
    second = asyncio.run(lookup.get_rights(Account(id=7), [10]))

    assert second[10].job is PostingRight.ALLOWED


def test_reset_cache_forces_a_new_query(make_repository) -> None:
    repository = make_repository(user_rights={7: [SourceRights(10)]})
    lookup = _lookup(repository)

    asyncio.run(lookup.get_rights(Account(id=7), [10]))
    lookup.reset_cache()
    asyncio.run(lookup.get_rights(Account(id=7), [10]))

    assert repository.calls["fetch_user_posting_rights"] == 2


def test_anonymous_account_never_queries_the_store(make_repository) -> None:
    repository = make_repository(user_rights={0: [SourceRights(10, job=PostingRight.TRUSTED)]})

    rights = asyncio.run(_lookup(repository).get_rights(Account(id=None), [10, 20]))

    assert rights == {10: SourceRights(10), 20: SourceRights(20)}
    assert sum(repository.calls.values()) == 0


def test_empty_source_list_returns_every_stored_record(make_repository) -> None:
    repository = make_repository(
        user_rights={7: [SourceRights(10, job=PostingRight.ALLOWED), SourceRights(30, training=PostingRight.BLOCKED)]}
    )

    rights = asyncio.run(_lookup(repository).get_rights(Account(id=7), []))

    assert sorted(rights) == [10, 30]


def test_domain_records_fill_sources_without_user_records(make_repository) -> None:
    repository = make_repository(
        user_rights={7: [SourceRights(10, job=PostingRight.BLOCKED)]},
        domain_rights={"ngo.org": [SourceRights(10, job=PostingRight.TRUSTED), SourceRights(20, job=PostingRight.ALLOWED)]},
        emails={7: "staff@NGO.org"},
    )

    rights = asyncio.run(_lookup(repository).get_rights(Account(id=7), [10, 20, 30]))

    assert rights[10].job is PostingRight.BLOCKED
    assert rights[20].job is PostingRight.ALLOWED
    assert rights[30].job is PostingRight.UNVERIFIED


def test_domain_query_is_skipped_when_user_records_cover_all_sources(make_repository) -> None:
    repository = make_repository(
        user_rights={7: [SourceRights(10), SourceRights(20)]},
        emails={7: "staff@ngo.org"},
    )

    asyncio.run(_lookup(repository).get_rights(Account(id=7), [10, 20]))

    assert repository.calls["fetch_domain_posting_rights"] == 0
    assert repository.calls["get_user_email"] == 0


def test_privileged_domain_gets_default_rights(make_repository) -> None:
    repository = make_repository(emails={7: "officer@un.org"})
    policy = PrivilegedDomainPolicy.from_config(["un.org"], {"job": "allowed", "training": "trusted"})
    lookup = _lookup(repository, policy=policy)

    rights = asyncio.run(lookup.get_rights(Account(id=7), [10]))
    explicit_only = asyncio.run(lookup.get_rights(Account(id=7), [10], check_privileged_domains=False))

    assert rights[10] == SourceRights(10, job=PostingRight.ALLOWED, training=PostingRight.TRUSTED)
    assert explicit_only[10] == SourceRights(10)
    assert repository.calls["get_user_email"] == 1


def test_list_sources_prefers_user_records_over_domain_records(make_repository) -> None:
    repository = make_repository(
        user_rights={7: [SourceRights(10, job=PostingRight.ALLOWED)]},
        domain_rights={"ngo.org": [SourceRights(10, job=PostingRight.TRUSTED), SourceRights(20, job=PostingRight.TRUSTED)]},
        emails={7: "staff@ngo.org"},
    )

    sources = asyncio.run(
        _lookup(repository).list_sources_with_posting_rights(Account(id=7), {"job": [2, 3]})
    )

    assert sources[10].job is PostingRight.ALLOWED
    assert sources[20].job is PostingRight.TRUSTED


def test_list_sources_combines_filters_with_operator(make_repository) -> None:
    repository = make_repository(
        user_rights={
            7: [
                SourceRights(10, job=PostingRight.ALLOWED, training=PostingRight.ALLOWED),
                SourceRights(20, job=PostingRight.ALLOWED, training=PostingRight.BLOCKED),
                SourceRights(30, job=PostingRight.BLOCKED, training=PostingRight.TRUSTED),
            ]
        }
    )
    lookup = _lookup(repository)
    filters = {"job": [2], "training": [2, 3]}

    both = asyncio.run(lookup.list_sources_with_posting_rights(Account(id=7), filters, operator="AND"))
    either = asyncio.run(lookup.list_sources_with_posting_rights(Account(id=7), filters, operator="OR"))

    assert sorted(both) == [10]
    assert sorted(either) == [10, 20, 30]


def test_list_sources_rejects_invalid_operator(make_repository) -> None:
    lookup = _lookup(make_repository(user_rights={7: [SourceRights(10)]}))

    with pytest.raises(RepositoryValidationError, match="operator"):
        asyncio.run(lookup.list_sources_with_posting_rights(Account(id=7), {"job": [2]}, operator="XOR"))


def test_allowed_or_trusted_for_any_source(make_repository) -> None:
    repository = make_repository(
        user_rights={
            7: [SourceRights(10, job=PostingRight.BLOCKED), SourceRights(20, job=PostingRight.TRUSTED)],
            8: [SourceRights(10, job=PostingRight.UNVERIFIED, training=PostingRight.ALLOWED)],
        }
    )
    lookup = _lookup(repository)

    assert asyncio.run(lookup.is_user_allowed_or_trusted_for_any_source(Account(id=7)))
    assert not asyncio.run(lookup.is_user_allowed_or_trusted_for_any_source(Account(id=8), "job"))
    assert asyncio.run(lookup.is_user_allowed_or_trusted_for_any_source(Account(id=8), "training"))
    assert not asyncio.run(lookup.is_user_allowed_or_trusted_for_any_source(Account(id=0), "job"))


def test_allowed_or_trusted_rejects_unsupported_kind(make_repository) -> None:
    lookup = _lookup(make_repository())

    with pytest.raises(ValueError, match="invalid content kind: report"):
        asyncio.run(lookup.is_user_allowed_or_trusted_for_any_source(Account(id=7), "report"))


def test_store_failures_propagate(make_repository) -> None:
    repository = make_repository()
    repository.available = False

    with pytest.raises(RepositoryUnavailableError):
        asyncio.run(_lookup(repository).get_rights(Account(id=7), [10]))


def test_cache_key_normalizes_source_order() -> None:
    assert RightsCache.key(7, [3, 1, 3], True) == (7, (1, 3), True)
    assert RightsCache.key(7, [1, 3], False) != RightsCache.key(7, [1, 3], True)


def test_rights_for_kinds_a_source_does_not_accept_are_reset(make_repository) -> None:
    repository = make_repository(
        user_rights={7: [SourceRights(10, job=PostingRight.TRUSTED, training=PostingRight.ALLOWED)]},
        domain_rights={"ngo.org": [SourceRights(20, job=PostingRight.BLOCKED, training=PostingRight.TRUSTED)]},
        emails={7: "staff@ngo.org"},
        allowed_content_types={10: ["job"], 20: ["training", "report"]},
    )
    lookup = _lookup(repository)

    rights = asyncio.run(lookup.get_rights(Account(id=7), [10, 20]))
    asyncio.run(lookup.get_rights(Account(id=7), [10, 20], check_privileged_domains=False))

    assert rights[10] == SourceRights(10, job=PostingRight.TRUSTED)
    assert rights[20] == SourceRights(20, training=PostingRight.TRUSTED)
    assert repository.calls["get_allowed_content_types"] == 2


def test_source_without_accepted_kinds_counts_as_unverified(make_repository) -> None:
    repository = make_repository(
        user_rights={7: [SourceRights(10, job=PostingRight.TRUSTED)]},
        allowed_content_types={},
    )

    rights = asyncio.run(_lookup(repository).get_rights(Account(id=7), [10]))

    assert rights[10] == SourceRights(10)


def test_privileged_defaults_are_limited_to_accepted_kinds(make_repository) -> None:
    repository = make_repository(emails={7: "officer@un.org"}, allowed_content_types={10: ["training"]})
    policy = PrivilegedDomainPolicy.from_config(["un.org"], "allowed")

    rights = asyncio.run(_lookup(repository, policy=policy).get_rights(Account(id=7), [10]))

    assert rights[10] == SourceRights(10, training=PostingRight.ALLOWED)


def test_allowed_or_trusted_ignores_sources_not_accepting_the_kind(make_repository) -> None:
    repository = make_repository(
        user_rights={
            7: [SourceRights(10, job=PostingRight.TRUSTED), SourceRights(20, job=PostingRight.ALLOWED)],
            8: [SourceRights(10, job=PostingRight.TRUSTED)],
        },
        allowed_content_types={10: ["training"], 20: ["job"]},
    )
    lookup = _lookup(repository)

    listed = asyncio.run(lookup.list_sources_with_posting_rights(Account(id=8), {"job": [3]}))

    assert listed == {10: SourceRights(10)}
    assert asyncio.run(lookup.is_user_allowed_or_trusted_for_any_source(Account(id=7), "job"))
    assert not asyncio.run(lookup.is_user_allowed_or_trusted_for_any_source(Account(id=8), "job"))
