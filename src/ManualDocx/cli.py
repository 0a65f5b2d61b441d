from __future__ import annotations

import argparse
import logging
from pathlib import Path

from . import config, converter
from .utils import configure_logging, resolve_output_path

OPTION_FLAGS = (
    ("title", "Product name shown on the cover and header"),
    ("subtitle", "Subtitle shown after the title on the cover"),
    ("doctype", "Document type, e.g. 'Operation Manual'"),
    ("version", "Document version"),
    ("date", "Issue date"),
    ("dept", "Issuing department"),
    ("docnum", "Document control number"),
    ("logo", "Logo image, relative to the input file"),
    ("company", "Company name"),
    ("theme", "Accent colour theme: blue, orange or green"),
    ("hr-pagebreak", "Treat horizontal rules as page breaks (true/false)"),
    ("kroki-url", "Diagram rendering endpoint"),
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ManualDocx",
        description="Convert Markdown into a DOCX manual with cover, change history and contents.",
    )
    parser.add_argument("input", nargs="?", type=str, help="Path to Markdown file")
    parser.add_argument("output", nargs="?", type=str, help="Output DOCX path")
    parser.add_argument("-o", "--output", dest="output_option", type=str, help="Output DOCX path")
    for name, help_text in OPTION_FLAGS:
        parser.add_argument(f"--{name}", dest=config.config_key(name), default=None, help=help_text)
    parser.add_argument("--config", type=str, help="YAML config file (defaults to <input>.yaml)")
    parser.add_argument("--save-config", type=str, help="Write the resolved options to a YAML file and exit")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose)
    if not args.input and not args.save_config:
        parser.error("an input Markdown file is required unless --save-config is given")

    input_path = Path(args.input).expanduser() if args.input else None
    config_path = Path(args.config) if args.config else None
    if config_path is None and input_path is not None:
        config_path = config.default_config_path(input_path)
        if config_path:
            logging.info("Loading config file: %s", config_path)

    cli_values = {key: getattr(args, key) for key in config.option_keys() if hasattr(args, key)}
    options = config.resolve_options(cli_values, config.load_config_file(config_path))

    if args.save_config:
        config.save_config_file(Path(args.save_config), options)
        return

    if not input_path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")
    output_path = resolve_output_path(input_path, args.output_option or args.output)

    logging.info("Converting %s", input_path)
    converter.convert_file(input_path, output_path, options)
    logging.info("Done. Saved to %s", output_path)


if __name__ == "__main__":
    main()
