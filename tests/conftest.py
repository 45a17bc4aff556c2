import pytest

ARIN_STATS = """\
2|arin|20240101|5|19700101|20240101|-0500
arin|*|ipv4|*|3|summary
arin|*|ipv6|*|2|summary
# comment line
arin|AU|ipv4|1.0.0.0|256|20110811|allocated|abc123
arin|US|ipv4|3.0.0.0|768|19880223|assigned|def456
arin|US|ipv4|4.0.0.0|256|19921201|available|
arin|US|asn|7|1|19920101|allocated|ghi789
arin|ZZ|ipv4|5.0.0.0|256|20000101|allocated|
arin|US|ipv6|2600::|12|20060929|allocated|jkl012
"""

RIPE_STATS = """\
2|ripencc|20240101|3|19830705|20240101|+0100
ripencc|au|ipv4|1.0.0.0|256|20110811|allocated|xyz
ripencc|US|ipv6|2a00:1450::|32|20090223|allocated|uvw
ripencc|DE|ipv4|2.0.0.0|1024|20100712|allocated
"""


@pytest.fixture(autouse=True)
def no_step_summary(monkeypatch):
    monkeypatch.delenv("GITHUB_STEP_SUMMARY", raising=False)
