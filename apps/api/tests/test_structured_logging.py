from closepro.core.structured_logging import build_log_context


def test_build_log_context_skips_missing_fields():
    assert build_log_context(org_id="org-1", action="upload_call") == {
        "org_id": "org-1",
        "action": "upload_call",
    }
    assert build_log_context() == {}
