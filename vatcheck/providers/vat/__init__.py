"""VAT registry adapters, each implementing IVatProvider.

Registry keys used by the provider manager and the ``PROVIDERS_ORDER``
setting:
    vies_soap  -- ViesSoapProvider.  Official VIES SOAP service, free.
    vies_rest  -- ViesRestProvider.  JSON front-end of VIES, free.
    isvat      -- IsvatProvider.  isvat.eu proxy, free with a monthly quota.
    vatlayer   -- VatlayerProvider.  Paid, needs an API key.
    viesapi    -- ViesApiProvider.  Paid, needs an API key (and secret).
    aeat       -- AeatProvider.  Spanish tax agency, free, Spanish NIFs only,
                  needs a client certificate.

Every adapter returns ``valid=False`` when the registry says the number is
invalid and raises ApiUnavailableError when it could not get an answer.
"""

from vatcheck.providers.vat.aeat_provider import AeatProvider
from vatcheck.providers.vat.isvat_provider import IsvatProvider
from vatcheck.providers.vat.vatlayer_provider import VatlayerProvider
from vatcheck.providers.vat.vies_rest_provider import ViesRestProvider
from vatcheck.providers.vat.vies_soap_provider import ViesSoapProvider
from vatcheck.providers.vat.viesapi_provider import ViesApiProvider

__all__ = [
    "AeatProvider",
    "IsvatProvider",
    "VatlayerProvider",
    "ViesApiProvider",
    "ViesRestProvider",
    "ViesSoapProvider",
]
