"""Recipe variants and the name-keyed recipe registry.

A recipe only describes what to run for one stage of one step; the
pipeline executes the returned actions. Steps without an entry in
RECIPE_OVERRIDES fall back to DEFAULT_RECIPES stage by stage.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence

from .stages import Action, Invocation, Recipe, Stage, Step, StepCtx, WriteFile


def git_fetch(ctx: StepCtx) -> List[Action]:
    argv = ["git", "clone", "--depth", "1", "--recurse-submodules", "--shallow-submodules"]
    if ctx.step.ref:
        argv += ["--branch", ctx.step.ref]
    argv += [ctx.step.url, ctx.step.name]
    return [Invocation(tuple(argv), cwd=ctx.root)]


def no_op(ctx: StepCtx) -> List[Action]:
    return []


def _ldconfig() -> Invocation:
    return Invocation(("ldconfig",), privileged=True)


# meson + ninja


def meson_configure_with(*extra: str) -> Recipe:
    def configure(ctx: StepCtx) -> List[Action]:
        argv = (
            "meson",
            "setup",
            "build",
            f"--prefix={ctx.prefix}",
            "--buildtype=release",
            *extra,
        )
        return [Invocation(argv, cwd=ctx.source_dir)]

    configure.__name__ = "meson_configure"
    return configure


meson_configure = meson_configure_with()


def meson_build(ctx: StepCtx) -> List[Action]:
    return [Invocation(("ninja", "-C", "build", "-j", str(ctx.jobs)), cwd=ctx.source_dir)]


def meson_install(ctx: StepCtx) -> List[Action]:
    return [
        Invocation(("ninja", "-C", "build", "install"), cwd=ctx.source_dir, privileged=True),
        _ldconfig(),
    ]


# cmake


def cmake_configure_with(*extra: str) -> Recipe:
    def configure(ctx: StepCtx) -> List[Action]:
        argv = (
            "cmake",
            "-S",
            ".",
            "-B",
            "build",
            "-G",
            "Ninja",
            "-DCMAKE_BUILD_TYPE=Release",
            f"-DCMAKE_INSTALL_PREFIX={ctx.prefix}",
            *extra,
        )
        return [Invocation(argv, cwd=ctx.source_dir)]

    configure.__name__ = "cmake_configure"
    return configure


cmake_configure = cmake_configure_with()


def cmake_build(ctx: StepCtx) -> List[Action]:
    return [Invocation(("cmake", "--build", "build", "--parallel", str(ctx.jobs)), cwd=ctx.source_dir)]


def cmake_install(ctx: StepCtx) -> List[Action]:
    return [
        Invocation(("cmake", "--install", "build"), cwd=ctx.source_dir, privileged=True),
        _ldconfig(),
    ]


# plain Makefile projects (no configure stage, PREFIX passed to make)


def make_build(ctx: StepCtx) -> List[Action]:
    return [Invocation(("make", f"-j{ctx.jobs}", f"PREFIX={ctx.prefix}"), cwd=ctx.source_dir)]


def make_install(ctx: StepCtx) -> List[Action]:
    return [Invocation(("make", "install", f"PREFIX={ctx.prefix}"), cwd=ctx.source_dir, privileged=True)]


# autotools


def autotools_configure(ctx: StepCtx) -> List[Action]:
    return [
        Invocation(("autoreconf", "-fi"), cwd=ctx.source_dir),
        Invocation(("./configure", f"--prefix={ctx.prefix}"), cwd=ctx.source_dir),
    ]


def autotools_build(ctx: StepCtx) -> List[Action]:
    return [Invocation(("make", f"-j{ctx.jobs}"), cwd=ctx.source_dir)]


def autotools_install(ctx: StepCtx) -> List[Action]:
    return [
        Invocation(("make", "install"), cwd=ctx.source_dir, privileged=True),
        _ldconfig(),
    ]


# Locally built library registered with dpkg through an equivs virtual package,
# so apt treats the distro package as satisfied.


def equivs_control(ctx: StepCtx) -> str:
    opts = ctx.step.options
    package = str(opts.get("package") or f"{ctx.step.name}-local")
    version = str(opts.get("version") or "0.0-local1")
    provides = ", ".join(str(p) for p in (opts.get("provides") or []))
    lines = [
        "Section: misc",
        "Priority: optional",
        "Standards-Version: 3.9.2",
        "",
        f"Package: {package}",
        f"Version: {version}",
        "Maintainer: source-builder <root@localhost>",
    ]
    if provides:
        lines.append(f"Provides: {provides}")
    lines += [
        "Architecture: all",
        f"Description: {ctx.step.name} built from source into {ctx.prefix}",
        f" Registers the local {ctx.step.name} build with dpkg.",
    ]
    return "\n".join(lines) + "\n"


def equivs_deb_name(ctx: StepCtx) -> str:
    opts = ctx.step.options
    package = str(opts.get("package") or f"{ctx.step.name}-local")
    version = str(opts.get("version") or "0.0-local1")
    return f"{package}_{version}_all.deb"


def meson_install_with_virtual_package(ctx: StepCtx) -> List[Action]:
    equivs_dir = ctx.source_dir / "equivs"
    control = equivs_dir / f"{ctx.step.name}.control"
    return [
        *meson_install(ctx),
        WriteFile(control, equivs_control(ctx)),
        Invocation(("equivs-build", control.name), cwd=equivs_dir),
        Invocation(("dpkg", "-i", equivs_deb_name(ctx)), cwd=equivs_dir, privileged=True),
    ]


DEFAULT_RECIPES: Dict[Stage, Recipe] = {
    Stage.FETCH: git_fetch,
    Stage.CONFIGURE: meson_configure,
    Stage.BUILD: meson_build,
    Stage.INSTALL: meson_install,
}

CMAKE: Dict[Stage, Recipe] = {
    Stage.CONFIGURE: cmake_configure,
    Stage.BUILD: cmake_build,
    Stage.INSTALL: cmake_install,
}

MAKE: Dict[Stage, Recipe] = {
    Stage.CONFIGURE: no_op,
    Stage.BUILD: make_build,
    Stage.INSTALL: make_install,
}

AUTOTOOLS: Dict[Stage, Recipe] = {
    Stage.CONFIGURE: autotools_configure,
    Stage.BUILD: autotools_build,
    Stage.INSTALL: autotools_install,
}

RECIPE_OVERRIDES: Dict[str, Dict[Stage, Recipe]] = {
    "wayland": {Stage.CONFIGURE: meson_configure_with("-Ddocumentation=false", "-Dtests=false")},
    "wayland-protocols": {Stage.CONFIGURE: meson_configure_with("-Dtests=false")},
    "seatd": {Stage.CONFIGURE: meson_configure_with("-Dlibseat-logind=systemd", "-Dserver=enabled")},
    "json-c": CMAKE,
    "scdoc": MAKE,
    "mtdev": AUTOTOOLS,
    "libliftoff": {Stage.INSTALL: meson_install_with_virtual_package},
}


def select_recipe(
    name: str,
    stage: Stage,
    *,
    overrides: Optional[Mapping[str, Mapping[Stage, Recipe]]] = None,
) -> Recipe:
    table = RECIPE_OVERRIDES if overrides is None else overrides
    return (table.get(name) or {}).get(stage) or DEFAULT_RECIPES[stage]


def make_step(
    name: str,
    url: str,
    *,
    ref: Optional[str] = None,
    options: Optional[Mapping[str, Any]] = None,
    overrides: Optional[Mapping[str, Mapping[Stage, Recipe]]] = None,
) -> Step:
    return Step(
        name=name,
        url=url,
        ref=ref,
        options=dict(options or {}),
        fetch=select_recipe(name, Stage.FETCH, overrides=overrides),
        configure=select_recipe(name, Stage.CONFIGURE, overrides=overrides),
        build=select_recipe(name, Stage.BUILD, overrides=overrides),
        install=select_recipe(name, Stage.INSTALL, overrides=overrides),
    )


def plan_step(ctx: StepCtx) -> Dict[Stage, Sequence[Action]]:
    """Expand every stage recipe of ctx.step without running anything."""
    return {stage: ctx.step.recipe(stage)(ctx) for stage in Stage}
