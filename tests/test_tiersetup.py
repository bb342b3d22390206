from sandboxkit.tiersetup import (
    ChangeTierRequest,
    duplicate_template_name,
    new_change_tier_request,
)


def test_new_change_tier_request_fields():
    request = new_change_tier_request("toolchain-host", "testingtiers", "advanced")
    assert request == ChangeTierRequest(
        namespace="toolchain-host",
        mur_name="testingtiers",
        tier_name="advanced",
    )
    assert request.generate_name == "changetierrequest-"
    assert request.name == ""


def test_duplicate_template_name():
    assert duplicate_template_name("cookie", "base-dev-abc") == "cookiefrombase-dev-abc"


def test_duplicate_template_name_keeps_parts():
    name = duplicate_template_name("cheesecake", "advanced-code-xyz")
    assert name.startswith("cheesecake")
    assert name.endswith("advanced-code-xyz")