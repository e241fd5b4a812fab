import hashlib
import json

import pytest

from masterlist.registration.diffs import (
    DiffParseError,
    ModPayload,
    parse_definition_diff,
    parse_mod_info,
    pdiff_hash,
    process_mod,
    process_mod_info,
)

VALID_PDIFF = """\
// adds a gamemode and a stat
$ENUM_ADD gamemodes
    gg
    sns   // sticks and stones
$ENUM_END

$PROP_START
    bool hasSeenGunGameIntro
    int gunGameWins[4]
$PROP_END
"""


def sha1(text: str) -> str:
    return hashlib.sha1(text.encode()).hexdigest()  # noqa: S324


class TestParseDefinitionDiff:
    def test_parses_enum_adds_and_props(self):
        diff = parse_definition_diff(VALID_PDIFF)

        assert diff.enum_adds == {"gamemodes": ["gg", "sns"]}
        assert [(p.type, p.name, p.array_size) for p in diff.props] == [
            ("bool", "hasSeenGunGameIntro", None),
            ("int", "gunGameWins", "4"),
        ]

    def test_empty_text_is_an_empty_diff(self):
        diff = parse_definition_diff("// nothing here\n\n")
        assert diff.enum_adds == {}
        assert diff.props == []

    def test_repeated_enum_block_appends(self):
        diff = parse_definition_diff("$ENUM_ADD maps\na\n$ENUM_END\n$ENUM_ADD maps\nb\n$ENUM_END\n")
        assert diff.enum_adds == {"maps": ["a", "b"]}

    @pytest.mark.parametrize(
        ("text", "line", "message"),
        [
            ("$ENUM_ADD gamemodes\ngg\n", 1, "unterminated"),
            ("$PROP_START\nbool x\n", 1, "unterminated"),
            ("$ENUM_END\n", 1, "without"),
            ("$PROP_END\n", 1, "without"),
            ("$ENUM_ADD a\n$PROP_START\n", 2, "nested"),
            ("$ENUM_ADD\n", 1, "invalid enum name"),
            ("$ENUM_ADD a\nnot valid\n$ENUM_END\n", 2, "invalid enum member"),
            ("$PROP_START\nbool\n$PROP_END\n", 2, "invalid property"),
            ("$PROP_START\nint wins[\n$PROP_END\n", 2, "invalid property"),
            ("bool floating\n", 1, "outside of a block"),
            ("$STRUCT_ADD foo\n", 1, "unknown directive"),
        ],
    )
    def test_malformed_input_raises(self, text, line, message):
        with pytest.raises(DiffParseError, match=message) as exc_info:
            parse_definition_diff(text)
        assert exc_info.value.line_number == line


class TestProcessMod:
    def test_valid_pdiff_gets_structured_diff_and_hash(self):
        mod = process_mod(ModPayload(Name="Gun Game", Version="1.0.0", pdiff=VALID_PDIFF))

        assert mod.pdiff_hash == sha1(VALID_PDIFF)
        assert mod.pdiff is not None
        assert mod.pdiff.hash == sha1(VALID_PDIFF)
        assert mod.pdiff.enum_adds == {"gamemodes": ["gg", "sns"]}

    def test_unparseable_pdiff_keeps_hash_but_drops_diff(self):
        broken = "$ENUM_ADD gamemodes\ngg\n"
        mod = process_mod(ModPayload(Name="Broken", pdiff=broken))

        assert mod.pdiff is None
        assert mod.pdiff_hash == sha1(broken)

    def test_hash_is_independent_of_parse_outcome(self):
        text = "$PROP_START\nbool x\n$PROP_END\n"
        parsed = process_mod(ModPayload(Name="a", pdiff=text))

        assert parsed.pdiff_hash == pdiff_hash(text)
        assert parsed.pdiff.hash == pdiff_hash(text)

    def test_mod_without_pdiff(self):
        mod = process_mod(ModPayload(Name="Cosmetics", Version="2.1", RequiredOnClient=False))

        assert mod.name == "Cosmetics"
        assert mod.version == "2.1"
        assert mod.pdiff is None
        assert mod.pdiff_hash is None


class TestParseModInfo:
    def test_parses_mod_list(self):
        raw = json.dumps(
            {
                "Mods": [
                    {"Name": "Northstar.Custom", "Version": "1.9.0", "RequiredOnClient": True},
                    {"Name": "Gun Game", "Version": "1.0.0", "RequiredOnClient": True, "pdiff": VALID_PDIFF},
                ],
            },
        ).encode()

        payload = parse_mod_info(raw)

        assert payload is not None
        assert [m.name for m in payload.mods] == ["Northstar.Custom", "Gun Game"]
        assert payload.mods[0].required_on_client is True

    @pytest.mark.parametrize(
        "raw",
        [
            b"not json",
            b"[]",
            b'{"Mods": "nope"}',
            b"{}",
            b'{"Mods": [{"Name": 5}]}',
            b"\xff\xfe",
            pytest.param(b'{"Mods": ' + b"[" * 100000 + b"]" * 100000 + b"}", id="deeply-nested"),
        ],
    )
    def test_malformed_payload_returns_none(self, raw):
        assert parse_mod_info(raw) is None


class TestProcessModInfo:
    def test_none_payload(self):
        assert process_mod_info(None) is None

    def test_every_mod_is_kept(self):
        payload = parse_mod_info(
            json.dumps({"Mods": [{"Name": "ok", "pdiff": VALID_PDIFF}, {"Name": "bad", "pdiff": "garbage"}]}),
        )

        mod_info = process_mod_info(payload)

        assert [m.name for m in mod_info.mods] == ["ok", "bad"]
        assert mod_info.mods[0].pdiff is not None
        assert mod_info.mods[1].pdiff is None
        assert mod_info.mods[1].pdiff_hash == sha1("garbage")
