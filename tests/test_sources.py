"""
Tests for the APT source file parser and writer.
"""

from conftest import ENTERPRISE_STANZA, NO_SUBSCRIPTION_STANZA

from pve_postinstall.sources import (
    LegacyLine,
    Stanza,
    dump_list,
    dump_sources,
    format_list_entry,
    parse_list,
    parse_sources,
)


class TestParseSources:
    def test_two_paragraphs(self):
        stanzas = parse_sources(ENTERPRISE_STANZA + "\n" + NO_SUBSCRIPTION_STANZA)
        assert len(stanzas) == 2
        assert stanzas[0].components == ["pve-enterprise"]
        assert stanzas[1].uris == ["http://download.proxmox.com/debian/pve"]
        assert stanzas[1].get("Signed-By") == "/usr/share/keyrings/proxmox-archive-keyring.gpg"
        assert all(s.enabled for s in stanzas)

    def test_unchanged_file_round_trips(self):
        text = ENTERPRISE_STANZA + "\n" + NO_SUBSCRIPTION_STANZA
        assert dump_sources(parse_sources(text)) == text

    def test_field_names_are_case_insensitive(self):
        stanza = parse_sources("types: deb\nuris: http://example.org\ncomponents: main\n")[0]
        assert stanza.words("TYPES") == ["deb"]
        assert stanza.get("Components") == "main"

    def test_commented_paragraph_is_disabled_stanza(self):
        text = "\n".join(f"# {line}" for line in ENTERPRISE_STANZA.splitlines()) + "\n"
        stanza = parse_sources(text)[0]
        assert stanza.is_paragraph
        assert stanza.commented
        assert not stanza.enabled
        assert stanza.components == ["pve-enterprise"]

    def test_comment_header_before_commented_paragraph(self):
        text = "# Proxmox enterprise repository\n# Types: deb\n# Components: pve-enterprise\n"
        stanza = parse_sources(text)[0]
        assert stanza.commented
        assert stanza.comments == ["# Proxmox enterprise repository"]
        assert stanza.has_component("pve-enterprise")

    def test_plain_comment_block(self):
        stanza = parse_sources("# managed by hand\n# do not edit\n")[0]
        assert not stanza.is_paragraph
        assert not stanza.enabled
        assert stanza.render() == "# managed by hand\n# do not edit"

    def test_enabled_no_field(self):
        stanza = parse_sources(NO_SUBSCRIPTION_STANZA + "Enabled: no\n")[0]
        assert not stanza.commented
        assert not stanza.enabled

    def test_multiline_value_is_kept(self):
        text = (
            "Types: deb\n"
            "URIs: http://example.org\n"
            "Suites: stable\n"
            "Signed-By:\n"
            " -----BEGIN PGP PUBLIC KEY BLOCK-----\n"
            " .\n"
            " -----END PGP PUBLIC KEY BLOCK-----\n"
        )
        stanzas = parse_sources(text)
        assert len(stanzas) == 1
        assert "BEGIN PGP" in stanzas[0].get("Signed-By")
        assert dump_sources(stanzas) == text

    def test_empty_text(self):
        assert parse_sources("") == []
        assert dump_sources([]) == ""


class TestStanza:
    def test_create(self):
        stanza = Stanza.create(
            uris=["http://download.proxmox.com/debian/pve"],
            suites=["trixie"],
            components=["pve-no-subscription"],
            signed_by="/usr/share/keyrings/proxmox-archive-keyring.gpg",
        )
        assert stanza.render() + "\n" == NO_SUBSCRIPTION_STANZA

    def test_disable_comments_every_field_line(self):
        stanza = parse_sources(ENTERPRISE_STANZA)[0]
        assert stanza.disable() is True
        lines = stanza.render().splitlines()
        assert lines and all(line.startswith("# ") for line in lines)

    def test_disable_twice_does_not_double_comment(self):
        stanza = parse_sources(ENTERPRISE_STANZA)[0]
        stanza.disable()
        reparsed = parse_sources(stanza.render())[0]
        assert reparsed.disable() is False
        assert "# # " not in reparsed.render()

    def test_enable_round_trip(self):
        stanza = parse_sources(NO_SUBSCRIPTION_STANZA)[0]
        stanza.disable()
        reparsed = parse_sources(stanza.render())[0]
        assert reparsed.enable() is True
        assert reparsed.render() + "\n" == NO_SUBSCRIPTION_STANZA

    def test_enable_drops_enabled_no(self):
        stanza = parse_sources(NO_SUBSCRIPTION_STANZA + "Enabled: no\n")[0]
        assert stanza.enable() is True
        assert stanza.enabled
        assert "Enabled" not in stanza.fields


class TestLegacyLines:
    def test_entry_fields(self):
        line = LegacyLine(raw="deb [arch=amd64] http://download.proxmox.com/debian/pve bookworm pve-no-subscription")
        assert line.is_entry
        assert line.enabled
        assert line.uri == "http://download.proxmox.com/debian/pve"
        assert line.components == ["pve-no-subscription"]

    def test_commented_entry(self):
        line = LegacyLine(raw="# deb https://enterprise.proxmox.com/debian/pve bookworm pve-enterprise")
        assert line.is_entry
        assert not line.enabled
        assert line.disable() is False

    def test_non_entry_lines(self):
        assert not LegacyLine(raw="").is_entry
        assert not LegacyLine(raw="# security updates").is_entry

    def test_disable_prefixes_comment(self):
        line = LegacyLine(raw="deb https://enterprise.proxmox.com/debian/pve bookworm pve-enterprise")
        assert line.disable() is True
        assert line.raw == "# deb https://enterprise.proxmox.com/debian/pve bookworm pve-enterprise"

    def test_untouched_lines_round_trip(self):
        text = "deb http://ftp.debian.org/debian bookworm main\n\n# comment\n"
        assert dump_list(parse_list(text)) == text

    def test_format_entry(self):
        assert (
            format_list_entry("http://deb.debian.org/debian", "bookworm", ["main", "contrib"])
            == "deb http://deb.debian.org/debian bookworm main contrib"
        )
