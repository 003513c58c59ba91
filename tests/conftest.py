"""Shared test fixtures for layerkit."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from pathlib import Path


MODULE = "github.com/acme/shop"

CONTAINER_WITH_USER = """package di

import (
\t"gorm.io/gorm"

\t"github.com/acme/shop/internal/handler/http"
\t"github.com/acme/shop/internal/repository"
\t"github.com/acme/shop/internal/usecase"
)

type Container struct {
\tdb *gorm.DB

\t// Repositories
\tuserRepo repository.UserRepository

\t// Use Cases
\tuserUC usecase.UserUseCase

\t// Handlers
\tuserHandler *http.UserHandler
}

func NewContainer(db *gorm.DB) *Container {
\tc := &Container{db: db}
\tc.setupRepositories()
\tc.setupUseCases()
\tc.setupHandlers()
\treturn c
}

func (c *Container) setupRepositories() {
\tc.userRepo = repository.NewPostgresUserRepository(c.db)
}

func (c *Container) setupUseCases() {
\tc.userUC = usecase.NewUserService(c.userRepo)
}

func (c *Container) setupHandlers() {
\tc.userHandler = http.NewUserHandler(c.userUC)
}

// Getters
func (c *Container) UserHandler() *http.UserHandler {
\treturn c.userHandler
}

func (c *Container) UserUseCase() usecase.UserUseCase {
\treturn c.userUC
}
"""

MAIN_WITH_USER = """package main

import (
\t"log"
\t"net/http"

\t"github.com/gorilla/mux"

\t"github.com/acme/shop/internal/di"
)

func main() {
\tdb := connect()

\t// Setup DI container
\tcontainer := di.NewContainer(db)

\trouter := mux.NewRouter()
\trouter.HandleFunc("/health", healthCheckHandler).Methods("GET")

\t// User routes
\tuserHandler := container.UserHandler()
\trouter.HandleFunc("/api/v1/users", userHandler.CreateUser).Methods("POST")
\trouter.HandleFunc("/api/v1/users/{id}", userHandler.GetUser).Methods("GET")
\trouter.HandleFunc("/api/v1/users/{id}", userHandler.UpdateUser).Methods("PUT")
\trouter.HandleFunc("/api/v1/users/{id}", userHandler.DeleteUser).Methods("DELETE")
\trouter.HandleFunc("/api/v1/users", userHandler.ListUsers).Methods("GET")

\t// Setup HTTP server with timeouts
\tserver := &http.Server{Addr: ":8080", Handler: router}
\tlog.Printf("Server starting on port %s", "8080")
\tlog.Fatal(server.ListenAndServe())
}
"""

# Hand-written entrypoint without a DI container.
MAIN_MANUAL = """package main

import "net/http"

func main() {
\thttp.HandleFunc("/", index)
\thttp.ListenAndServe(":8080", nil)
}
"""


def write_file(path: Path, content: str = "") -> None:
    """Create parent dirs and write content to a file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def _feature_files(root: Path, name: str) -> None:
    lower = name.lower()
    write_file(root / "internal" / "domain" / f"{lower}.go", f"package domain\n\ntype {name} struct {{\n}}\n")
    write_file(root / "internal" / "usecase" / f"{lower}_service.go", "package usecase\n")
    write_file(
        root / "internal" / "repository" / f"postgres_{lower}_repository.go", "package repository\n"
    )
    write_file(root / "internal" / "handler" / "http" / f"{lower}_handler.go", "package http\n")


@pytest.fixture()
def go_project(tmp_path: Path) -> Path:
    """A generated Go project with complete User and Product features.

    ``Invoice`` only has a domain entity.  There is no container and no
    ``main.go`` yet.
    """
    root = tmp_path / "shop"
    root.mkdir()
    write_file(root / "go.mod", f"module {MODULE}\n\ngo 1.21\n")
    _feature_files(root, "User")
    _feature_files(root, "Product")
    write_file(
        root / "internal" / "repository" / "interfaces.go",
        "package repository\n\n"
        "type UserRepository interface {\n}\n\n"
        "type ProductRepository interface {\n}\n",
    )
    write_file(root / "internal" / "domain" / "invoice.go", "package domain\n\ntype Invoice struct {\n}\n")
    write_file(root / "internal" / "domain" / "errors.go", "package domain\n")
    return root


@pytest.fixture()
def container_with_user() -> str:
    return CONTAINER_WITH_USER


@pytest.fixture()
def main_with_user() -> str:
    return MAIN_WITH_USER


@pytest.fixture()
def main_manual() -> str:
    return MAIN_MANUAL
