"""
xplatgen command line

Generates a C ABI header, platform bindings and implementation scaffolding
from a YAML API definition plus FlatBuffers schemas.

Usage:
    xplatgen validate api.yaml
    xplatgen generate api.yaml -o generated/
    xplatgen generate api.yaml --impl-lang rust --targets ios,macos --dry-run
    xplatgen init -n my_api --impl-lang go -o my_api/
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from . import __version__
from .common import GenerationContext
from .errors import OutputError, XplatError
from .fbs_parser import parse_fbs_files, resolve_fbs_path
from .flatc import FlatcConfig, find_flatc, run_flatc
from .loader import load_api_definition
from .planner import plan_generators
from .registry import GeneratorRegistry, default_registry
from .schema import IMPL_LANG_ALIASES, schema_json
from .types import ALL_TARGETS, APIDefinition, Artifact, IMPL_LANGS, ResolvedTypes
from .validator import validate
from .writer import clean_output, write_artifacts

logger = logging.getLogger(__name__)

STARTER_DEFINITION = """\
api:
  name: {name}
  version: 0.1.0
  description: Describe your API here
  impl_lang: {impl_lang}

flatbuffers:
  - schemas/types.fbs

handles:
  - name: Instance
    description: Main instance handle

interfaces:
  - name: lifecycle
    constructors:
      - name: create_instance
        returns:
          type: handle:Instance
        error: Common.ErrorCode
    methods:
      - name: get_version
        parameters:
          - name: instance
            type: handle:Instance
        returns:
          type: uint32
"""

STARTER_SCHEMA = """\
namespace Common;

enum ErrorCode : int32 {
    Ok = 0,
    InvalidArgument = 1,
    OutOfMemory = 2,
    NotFound = 3,
    InternalError = 4
}
"""


def target_list(value: str) -> list[str]:
    targets = [t.strip() for t in value.split(",") if t.strip()]
    unknown = [t for t in targets if t not in ALL_TARGETS]
    if unknown:
        raise argparse.ArgumentTypeError(
            f"unknown target(s) {', '.join(unknown)}; expected some of {', '.join(ALL_TARGETS)}")
    return targets


def schema_search_dirs(api_def_path: str, extra: Optional[list[str]] = None) -> list[Path]:
    """The definition's directory first, then any -I directories"""
    return [Path(api_def_path).parent] + [Path(d) for d in extra or []]


def load_and_validate(api_def_path: str, schema_dirs: Optional[list[str]] = None,
                      impl_lang: str = "", targets: Optional[list[str]] = None
                      ) -> tuple[APIDefinition, ResolvedTypes, list[Path]]:
    """Load, apply overrides, resolve schemas and validate.

    Raises:
        XplatError: any load, resolution or validation failure
    """
    api = load_api_definition(api_def_path)
    api.apply_overrides(impl_lang=IMPL_LANG_ALIASES.get(impl_lang, impl_lang), targets=targets)

    search_dirs = schema_search_dirs(api_def_path, schema_dirs)
    resolved = parse_fbs_files(search_dirs, api.flatbuffers)
    logger.debug(f"Resolved {len(resolved)} FlatBuffers types")

    validate(api, resolved)
    return api, resolved, search_dirs


def run_generators(ctx: GenerationContext, registry: Optional[GeneratorRegistry] = None) -> list[Artifact]:
    """Run every planned generator and collect their artifacts in plan order"""
    registry = registry or default_registry()
    api = ctx.api
    artifacts = []
    for name in plan_generators(api.effective_targets(), api.api.impl_lang):
        generator = registry.get(name, ctx)
        if generator is None:
            logger.debug(f"Skipping unavailable generator: {name}")
            continue
        logger.info(f"Running generator: {name}")
        artifacts.extend(generator.generate())
    return artifacts


def cmd_validate(args) -> int:
    if not args.quiet:
        print(f"Validating {args.api_def}")
    if args.flatc:
        find_flatc(args.flatc)

    api, resolved, _ = load_and_validate(args.api_def, args.schema_dir)
    logger.info(f"API: {api.api.name} v{api.api.version} ({api.api.impl_lang})")
    logger.info(f"Handles: {len(api.handles)}, interfaces: {len(api.interfaces)}, "
                f"resolved types: {len(resolved)}")

    if not args.quiet:
        print("Validation passed.")
    return 0


def cmd_generate(args) -> int:
    if not args.quiet:
        print(f"Generating from {args.api_def}")

    api, resolved, search_dirs = load_and_validate(
        args.api_def, args.schema_dir, impl_lang=args.impl_lang or "", targets=args.targets)
    output_dir = args.output

    # nothing touches the output directory until every generator has succeeded
    ctx = GenerationContext(api=api, resolved=resolved, output_dir=output_dir,
                            api_def_path=args.api_def)
    artifacts = run_generators(ctx)

    if args.clean:
        if not args.quiet:
            print(f"Cleaning {output_dir}")
        clean_output(output_dir, dry_run=args.dry_run)

    flatc_count = 0
    if args.skip_flatc:
        logger.warning("Skipping flatc; FlatBuffers language bindings will not be generated")
    elif api.flatbuffers:
        flatc_path = find_flatc(args.flatc or "")
        if flatc_path is None:
            logger.warning("flatc not found (use --flatc, XPLATGEN_FLATC_PATH or PATH); "
                           "FlatBuffers language bindings will not be generated")
        else:
            fbs_files = [str(resolve_fbs_path(p, search_dirs)) for p in api.flatbuffers]
            flatc_count = run_flatc(FlatcConfig(
                flatc_path=flatc_path,
                fbs_files=fbs_files,
                output_dir=output_dir,
                targets=api.effective_targets(),
                impl_lang=api.api.impl_lang,
                dry_run=args.dry_run,
            ))

    result = write_artifacts(artifacts, output_dir, dry_run=args.dry_run)

    for path in result.planned:
        print(f"  Would write: {path}")
    if not args.quiet:
        for path in result.written:
            print(f"Generated: {path}")
        summary = f"Generated {len(result.written)} files in {output_dir}"
        if flatc_count:
            summary += f" (flatc ran {flatc_count} invocation(s))"
        if result.preserved:
            summary += f", {len(result.preserved)} scaffold file(s) preserved"
        print(summary)
    return 0


def cmd_init(args) -> int:
    output = Path(args.output)
    if not args.quiet:
        print(f"Initializing project {args.name} in {output}")

    api_def_path = output / f"{args.name}.yaml"
    fbs_path = output / "schemas" / "types.fbs"
    try:
        fbs_path.parent.mkdir(parents=True, exist_ok=True)
        api_def_path.write_text(STARTER_DEFINITION.format(name=args.name, impl_lang=args.impl_lang),
                                encoding="utf-8")
        fbs_path.write_text(STARTER_SCHEMA, encoding="utf-8")
    except OSError as e:
        raise OutputError(f"initializing {output}: {e}") from e

    if not args.quiet:
        print("Created:")
        print(f"  {api_def_path}")
        print(f"  {fbs_path}")
        print(f"\nNext: xplatgen validate {api_def_path}")
    return 0


def cmd_dump_schema(args) -> int:
    text = schema_json() + "\n"
    if not args.output:
        sys.stdout.write(text)
        return 0
    try:
        Path(args.output).write_text(text, encoding="utf-8")
    except OSError as e:
        raise OutputError(f"writing {args.output}: {e}") from e
    if not args.quiet:
        print(f"Wrote schema to {args.output}")
    return 0


def cmd_version(args) -> int:
    print(f"xplatgen {__version__}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    # accepted before or after the sub-command; SUPPRESS keeps a sub-parser from resetting them
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true", default=argparse.SUPPRESS, help="Verbose output")
    common.add_argument("-q", "--quiet", action="store_true", default=argparse.SUPPRESS,
                        help="Suppress all output except errors")

    parser = argparse.ArgumentParser(
        prog="xplatgen", parents=[common],
        description="Cross-platform API binding generator: C ABI header, platform bindings "
                    "and implementation scaffolding from one YAML API definition.")
    parser.set_defaults(verbose=False, quiet=False)
    sub = parser.add_subparsers(dest="command", metavar="command")
    sub.required = True
    impl_choices = IMPL_LANGS + sorted(IMPL_LANG_ALIASES)

    p = sub.add_parser("validate", parents=[common],
                       help="Check the API definition and FlatBuffers schemas without generating")
    p.add_argument("api_def", help="Path to the API definition YAML")
    p.add_argument("-f", "--flatc", default="", help="Path to the FlatBuffers compiler")
    p.add_argument("-I", "--schema-dir", action="append", default=[],
                   help="Additional directory to search for .fbs files (repeatable)")
    p.set_defaults(func=cmd_validate)

    p = sub.add_parser("generate", parents=[common],
                       help="Generate the C ABI header, platform bindings and impl scaffolding")
    p.add_argument("api_def", help="Path to the API definition YAML")
    p.add_argument("-o", "--output", default="generated", help="Output directory")
    p.add_argument("-f", "--flatc", default="", help="Path to the FlatBuffers compiler")
    p.add_argument("--impl-lang", choices=impl_choices, help="Override impl_lang from the definition")
    p.add_argument("--targets", type=target_list, help="Override targets (comma-separated)")
    p.add_argument("--dry-run", action="store_true", help="Show what would be written without writing")
    p.add_argument("--clean", action="store_true", help="Remove the output directory first")
    p.add_argument("--skip-flatc", action="store_true", help="Do not run flatc even if it is available")
    p.add_argument("-I", "--schema-dir", action="append", default=[],
                   help="Additional directory to search for .fbs files (repeatable)")
    p.set_defaults(func=cmd_generate)

    p = sub.add_parser("init", parents=[common],
                       help="Scaffold a starter API definition and FlatBuffers schema")
    p.add_argument("-n", "--name", default="my_api", help="API name")
    p.add_argument("--impl-lang", choices=impl_choices, default="cpp", help="Implementation language")
    p.add_argument("-o", "--output", default=".", help="Output directory")
    p.set_defaults(func=cmd_init)

    p = sub.add_parser("dump_schema", parents=[common], help="Print the API definition JSON Schema")
    p.add_argument("-o", "--output", default="", help="Write to a file instead of stdout")
    p.set_defaults(func=cmd_dump_schema)

    p = sub.add_parser("version", parents=[common], help="Print the xplatgen version")
    p.set_defaults(func=cmd_version)
    return parser


def configure_logging(verbose: bool, quiet: bool):
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s", force=True)


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose, args.quiet)
    try:
        return args.func(args)
    except XplatError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
