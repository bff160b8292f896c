from models.models import Listing
from schemas.schema import PublicListingOut, UnlockedListingOut


class ListingProjector:
    @staticmethod
    def project_public(listing: Listing) -> PublicListingOut:
        return PublicListingOut.model_validate(listing)

    @staticmethod
    def project_unlocked(listing: Listing) -> UnlockedListingOut:
        # owner must be eagerly loaded by the repo
        return UnlockedListingOut.model_validate(listing)
