"""Tests for layerkit.integration.entrypoint — main.go route blocks."""

from __future__ import annotations

import pytest

from layerkit.errors import SharedFileUnrecognized
from layerkit.integration.entrypoint import (
    build_route_block,
    empty_entrypoint,
    entrypoint_skeleton,
    is_marked,
    parse_entrypoint,
    route_markers,
)

MODULE = "github.com/acme/shop"


class TestParseEntrypoint:
    def test_round_trip(self, main_with_user: str) -> None:
        model = parse_entrypoint(main_with_user)
        assert model.render() == main_with_user

    def test_splits_at_anchor(self, main_with_user: str) -> None:
        model = parse_entrypoint(main_with_user)
        assert model.features() == ["User"]
        assert model.gap == "\n"
        assert model.tail.startswith("\t// Setup HTTP server with timeouts\n")
        assert model.head.endswith('router.HandleFunc("/health", healthCheckHandler).Methods("GET")\n')
        assert model.registered_elsewhere == frozenset()

    def test_is_registered(self, main_with_user: str) -> None:
        model = parse_entrypoint(main_with_user)
        assert model.is_registered("User")
        assert model.is_registered("user")
        assert not model.is_registered("Product")

    def test_custom_container_variable(self, main_with_user: str) -> None:
        text = main_with_user.replace("container", "deps")
        model = parse_entrypoint(text)
        assert model.container_var == "deps"
        assert model.features() == ["User"]

    def test_manual_routes_count_as_registered(self, main_with_user: str) -> None:
        text = main_with_user.replace(
            "\trouter.HandleFunc(\"/health\"",
            '\trouter.HandleFunc("/api/v1/orders", listOrders).Methods("GET")\n'
            "\trouter.Use(loggingMiddleware)\n"
            '\trouter.HandleFunc("/health"',
        )
        model = parse_entrypoint(text)
        assert model.features() == ["User"]
        assert model.is_registered("Order")
        assert model.registered_elsewhere == frozenset({"orders"})

    def test_anchor_fallback(self) -> None:
        text = (
            "package main\n\nfunc main() {\n"
            "\tcontainer := di.NewContainer(db)\n"
            "\trouter := mux.NewRouter()\n"
            '\tlog.Fatal(http.ListenAndServe(":8080", router))\n'
            "}\n"
        )
        model = parse_entrypoint(text)
        assert model.tail.startswith("\tlog.Fatal(http.ListenAndServe")
        assert model.render() == text


class TestUnrecognized:
    def test_no_container(self, main_manual: str) -> None:
        with pytest.raises(SharedFileUnrecognized) as exc_info:
            parse_entrypoint(main_manual)
        assert exc_info.value.token == "di.NewContainer("

    def test_no_anchor(self) -> None:
        text = "package main\n\nfunc main() {\n\tcontainer := di.NewContainer(db)\n\t_ = container\n}\n"
        with pytest.raises(SharedFileUnrecognized) as exc_info:
            parse_entrypoint(text)
        assert exc_info.value.hint

    def test_anchor_only_before_container(self) -> None:
        text = (
            "package main\n\nfunc main() {\n"
            "\t// Setup HTTP server\n"
            "\tcontainer := di.NewContainer(db)\n"
            "}\n"
        )
        with pytest.raises(SharedFileUnrecognized):
            parse_entrypoint(text)


class TestWithBlocks:
    def test_new_block_goes_above_anchor(self, main_with_user: str) -> None:
        model = parse_entrypoint(main_with_user)
        text = model.with_blocks([build_route_block("Product")]).render()
        assert text.index("// User routes") < text.index("// Product routes")
        assert text.index("// Product routes") < text.index("// Setup HTTP server")
        assert parse_entrypoint(text).features() == ["User", "Product"]

    def test_registered_feature_is_skipped(self, main_with_user: str) -> None:
        model = parse_entrypoint(main_with_user)
        assert model.with_blocks([build_route_block("User")]).render() == main_with_user

    def test_without_blocks(self, main_with_user: str) -> None:
        model = parse_entrypoint(main_with_user)
        added = model.with_blocks([build_route_block("Product")])
        assert added.without_blocks(["product"]).render() == main_with_user


class TestSkeleton:
    def test_empty_entrypoint(self) -> None:
        model = empty_entrypoint(MODULE)
        assert model.synthesized
        assert model.blocks == ()
        assert model.render() == entrypoint_skeleton(MODULE)
        assert f'\t"{MODULE}/internal/di"' in model.head

    def test_block_added_to_skeleton_round_trips(self) -> None:
        text = empty_entrypoint(MODULE).with_blocks([build_route_block("User")]).render()
        assert parse_entrypoint(text).features() == ["User"]


class TestBuildRouteBlock:
    def test_text(self) -> None:
        block = build_route_block("category")
        assert block.feature == "Category"
        assert block.text == (
            "\n\t// Category routes\n"
            "\tcategoryHandler := container.CategoryHandler()\n"
            '\trouter.HandleFunc("/api/v1/categories", categoryHandler.CreateCategory).Methods("POST")\n'
            '\trouter.HandleFunc("/api/v1/categories/{id}", categoryHandler.GetCategory).Methods("GET")\n'
            '\trouter.HandleFunc("/api/v1/categories/{id}", categoryHandler.UpdateCategory).Methods("PUT")\n'
            '\trouter.HandleFunc("/api/v1/categories/{id}", categoryHandler.DeleteCategory)'
            '.Methods("DELETE")\n'
            '\trouter.HandleFunc("/api/v1/categories", categoryHandler.ListCategories).Methods("GET")\n'
        )

    def test_container_variable(self) -> None:
        block = build_route_block("User", container_var="deps")
        assert "\tuserHandler := deps.UserHandler()\n" in block.text


class TestMarkers:
    def test_route_markers(self, main_with_user: str) -> None:
        assert route_markers(main_with_user) == {"user", "users"}

    def test_manual_file_has_no_markers(self, main_manual: str) -> None:
        assert route_markers(main_manual) == set()

    @pytest.mark.parametrize("marker", ["product", "products"])
    def test_is_marked(self, marker: str) -> None:
        assert is_marked("Product", {marker})
        assert not is_marked("User", {marker})
