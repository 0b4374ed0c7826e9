"""Protected dependencies: packages that are commonly used only indirectly.

Unused-but-protected names are reported separately and are kept out of the
removable list unless the caller asks for aggressive mode.
"""

from __future__ import annotations

from fnmatch import fnmatchcase

PROTECTED_DEPENDENCIES: dict[str, list[str]] = {
    "core_runtime": [
        "node", "npm", "yarn", "pnpm", "npx", "nvm", "nodemon",
        "ts-node", "tsx", "esbuild", "swc",
    ],
    "build_tools": [
        "typescript", "webpack", "vite", "rollup", "esbuild", "swc", "babel",
        "@babel/core", "@babel/cli", "@babel/preset-env",
        "@babel/preset-typescript", "@babel/preset-react", "tsc", "tsc-alias",
    ],
    "framework_core": [
        "react", "react-dom", "vue", "@vue/runtime-core", "@angular/core",
        "@angular/common", "@angular/platform-browser", "next", "nuxt",
        "svelte", "solid-js", "preact", "inferno",
    ],
    "testing": [
        "jest", "vitest", "mocha", "chai", "sinon", "cypress", "playwright",
        "@testing-library/react", "@testing-library/vue",
        "@testing-library/jest-dom", "enzyme", "karma", "ava", "tap",
    ],
    "code_quality": [
        "eslint", "@eslint/js", "prettier", "stylelint", "husky",
        "lint-staged", "commitlint", "semantic-release",
        "conventional-changelog", "standard", "xo",
    ],
    "dev_server": [
        "webpack-dev-server", "vite", "rollup-plugin-serve", "live-server",
        "browser-sync", "concurrently", "cross-env", "dotenv", "dotenv-expand",
    ],
    "package_management": [
        "webpack-cli", "webpack-merge", "webpack-bundle-analyzer",
        "vite-plugin-*", "rollup-plugin-*", "esbuild-plugin-*",
        "parcel-bundler", "metro", "fusebox",
    ],
    "type_definitions": [
        "@types/node", "@types/react", "@types/react-dom", "@types/vue",
        "@types/angular", "@types/jest", "@types/mocha", "@types/chai",
        "@types/sinon", "@types/cypress",
    ],
    "configuration": [
        "tsconfig-paths", "tsconfig-paths-webpack-plugin", "dotenv-webpack",
        "webpack-define-plugin", "vite-plugin-env", "rollup-plugin-replace",
        "esbuild-define",
    ],
    "styling": [
        "css-loader", "style-loader", "sass-loader", "less-loader",
        "postcss-loader", "autoprefixer", "tailwindcss", "styled-components",
        "emotion", "linaria",
    ],
    "asset_handling": [
        "file-loader", "url-loader", "raw-loader", "html-webpack-plugin",
        "copy-webpack-plugin", "vite-plugin-static-copy", "rollup-plugin-copy",
    ],
    "dev_utilities": [
        "rimraf", "del", "glob", "chalk", "ora", "cli-progress", "commander",
        "yargs", "inquirer", "enquirer",
    ],
    "security": [
        "helmet", "cors", "express-rate-limit", "express-validator", "joi",
        "yup", "zod", "ajv", "json-schema",
    ],
    "database": [
        "mongoose", "sequelize", "prisma", "typeorm", "knex", "bookshelf",
        "objection", "drizzle-orm",
    ],
    "http_api": [
        "express", "koa", "fastify", "hapi", "axios", "fetch", "node-fetch",
        "got", "request", "superagent",
    ],
    "state_management": [
        "redux", "mobx", "zustand", "recoil", "jotai", "valtio", "pinia",
        "vuex", "ngrx", "akita",
    ],
    "routing": [
        "react-router", "vue-router", "@angular/router", "next/router",
        "nuxt/router", "svelte-routing", "solid-router",
    ],
    "i18n": [
        "react-i18next", "vue-i18n", "ngx-translate", "next-i18next",
        "nuxt-i18n", "i18next", "intl",
    ],
}


def _scope(name: str) -> str | None:
    if name.startswith("@") and "/" in name:
        return name.split("/", 1)[0]
    return None


def _entry_matches(entry: str, dependency: str) -> bool:
    if entry == dependency:
        return True
    if "*" in entry:
        return fnmatchcase(dependency, entry)
    # Any package from a protected scope shares its protection
    scope = _scope(dependency)
    return scope is not None and scope == _scope(entry)


def protection_reason(dependency: str) -> str | None:
    """Category label protecting *dependency* (e.g. ``"build tools"``), or None."""
    for category, entries in PROTECTED_DEPENDENCIES.items():
        if any(_entry_matches(entry, dependency) for entry in entries):
            return category.replace("_", " ")
    return None


def is_protected(dependency: str) -> bool:
    return protection_reason(dependency) is not None
