from fastapi import Depends

from reliefweb_rights.core.config import Settings, get_settings
from reliefweb_rights.services.access import AccessDecision
from reliefweb_rights.services.moderation import ModerationStatusUpdater
from reliefweb_rights.services.posting_rights import PrivilegedDomainPolicy
from reliefweb_rights.services.repository import get_repository
from reliefweb_rights.services.resolver import PostingRightsResolver
from reliefweb_rights.services.rights_lookup import RightsCache, RightsLookup


def get_privileged_domain_policy(settings: Settings = Depends(get_settings)) -> PrivilegedDomainPolicy:
    return PrivilegedDomainPolicy.from_config(
        settings.privileged_domains,
        settings.privileged_domain_default_rights,
    )


def get_rights_lookup(
    repository=Depends(get_repository),
    policy: PrivilegedDomainPolicy = Depends(get_privileged_domain_policy),
) -> RightsLookup:
    # Shared by every dependency of the same request.
    return RightsLookup(repository, policy=policy, cache=RightsCache())


def get_resolver(lookup: RightsLookup = Depends(get_rights_lookup)) -> PostingRightsResolver:
    return PostingRightsResolver(lookup)


def get_access_decision(lookup: RightsLookup = Depends(get_rights_lookup)) -> AccessDecision:
    return AccessDecision(lookup)


def get_status_updater(
    lookup: RightsLookup = Depends(get_rights_lookup),
    repository=Depends(get_repository),
) -> ModerationStatusUpdater:
    return ModerationStatusUpdater(lookup, repository)
