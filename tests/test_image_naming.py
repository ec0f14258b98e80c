"""Unit tests for utils/image_naming.py"""

import pytest

from utils.image_naming import clean_source, derive_target, destination_prefix, iter_mirror_pairs


class TestDeriveTarget:
    """Tests for derive_target"""

    def test_flattens_path_into_namespace(self):
        assert derive_target("library/nginx", "alice") == ("library/nginx", "alice/library.nginx")

    def test_single_segment_source(self):
        assert derive_target("nginx", "alice") == ("nginx", "alice/nginx")

    def test_keeps_tag_and_registry_host(self):
        source, target = derive_target("gcr.io/distroless/static:nonroot", "bob")
        assert source == "gcr.io/distroless/static:nonroot"
        assert target == "bob/gcr.io.distroless.static:nonroot"

    def test_strips_digest_marker(self):
        assert derive_target("repo/img@sha256abcdef", "alice") == ("repo/imgabcdef", "alice/repo.imgabcdef")

    def test_digest_becomes_tag(self):
        source, target = derive_target("quay.io/coreos/etcd@sha256:0123abcd", "alice")
        assert source == "quay.io/coreos/etcd:0123abcd"
        assert target == "alice/quay.io.coreos.etcd:0123abcd"
        assert "@" not in target

    def test_only_first_digest_marker_removed(self):
        assert clean_source("a@sha256@sha256") == "a@sha256"

    @pytest.mark.parametrize(
        "source", ["nginx", "library/nginx:1.25", "k8s.gcr.io/pause@sha256:abc", "a/b/c/d"]
    )
    def test_deterministic(self, source):
        assert derive_target(source, "alice") == derive_target(source, "alice")

    def test_namespace_changes_target_only(self):
        assert derive_target("library/nginx", "bob") == ("library/nginx", "bob/library.nginx")


class TestIterMirrorPairs:
    """Tests for iter_mirror_pairs"""

    def test_skips_empty_sources(self):
        pairs = list(iter_mirror_pairs(["", "nginx", "", "redis:7", ""], "alice"))
        assert pairs == [("nginx", "alice/nginx"), ("redis:7", "alice/redis:7")]

    def test_all_empty(self):
        assert list(iter_mirror_pairs(["", ""], "alice")) == []


class TestDestinationPrefix:
    """Tests for destination_prefix"""

    def test_no_server_is_bare_namespace(self):
        assert destination_prefix("alice") == "alice"
        assert destination_prefix("alice", "") == "alice"

    @pytest.mark.parametrize(
        "server",
        ["registry.example.com", "https://registry.example.com", "https://registry.example.com/v1/"],
    )
    def test_server_host_prefixes_namespace(self, server):
        assert destination_prefix("alice", server) == "registry.example.com/alice"

    def test_keeps_port(self):
        assert destination_prefix("alice", "localhost:5000") == "localhost:5000/alice"

    @pytest.mark.parametrize("server", ["docker.io", "https://index.docker.io/v1/", "registry-1.docker.io"])
    def test_docker_hub_has_no_prefix(self, server):
        assert destination_prefix("alice", server) == "alice"

    def test_targets_carry_server(self):
        prefix = destination_prefix("alice", "registry.example.com")
        assert derive_target("library/nginx", prefix) == (
            "library/nginx",
            "registry.example.com/alice/library.nginx",
        )
