"""CLI argument handling and identifier generation."""

import pytest

from agencyflow.server_cli import build_parser
from agencyflow.services.id_generator import generate_id


def test_parser_defaults():
    args = build_parser().parse_args([])
    assert (args.host, args.port, args.local, args.reload) == ("0.0.0.0", 8080, False, False)
    assert args.log_level is None


def test_parser_local_mode_flags():
    args = build_parser().parse_args(["--local", "--port", "9000", "--log-level", "debug"])
    assert args.local and args.port == 9000 and args.log_level == "debug"


def test_generate_id_uses_prefix():
    approval_id = generate_id("appr_")
    assert approval_id.startswith("appr_") and len(approval_id) == len("appr_") + 16
    assert generate_id("appr_") != approval_id


def test_generate_id_rejects_unknown_prefix():
    with pytest.raises(ValueError):
        generate_id("task_")
