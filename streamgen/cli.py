"""
streamgen :: CLI

Usage:
    streamgen config <generation_config.json> [--temperature T] [--top-k K] [--top-p P]
    streamgen shards <model_dir>
    streamgen render <model_dir> -m user:Hello [-m assistant:Hi ...] [--no-generation-prompt]
    streamgen tokenize <model_dir> <text>

Inspection tools for checkpoints: what a generation config resolves to,
which weight files a sharded checkpoint needs, what prompt a chat
template produces, and how a text streams back through the detokenizer.

INL - 2025
"""

import argparse
import sys
from pathlib import Path

from streamgen.core.errors import StreamGenError
from streamgen.core.logging import setup_logging


def _apply_overrides(config, args):
    """Command-line flags win over the document."""
    if args.temperature is not None:
        config.set_temperature(args.temperature)
    if args.top_k is not None:
        config.set_top_k(args.top_k)
    if args.top_p is not None:
        config.set_top_p(args.top_p)
    if args.repetition_penalty is not None:
        config.set_repetition_penalty(args.repetition_penalty)
    if args.max_new_tokens is not None:
        config.set_max_new_tokens(args.max_new_tokens)
    return config


def cmd_config(args):
    """Show what a generation config resolves to."""
    from streamgen.core.generation_config import GenerationConfig

    config = _apply_overrides(GenerationConfig.from_file(args.path), args)
    max_new_tokens = config.max_new_tokens if config.max_new_tokens is not None else "caller-supplied"

    print(f"{'eos_token_id':<20} {config.get_eos_token_id()}")
    print(f"{'sampling':<20} {config.sampling()}")
    print(f"{'repetition_penalty':<20} {config.get_repetition_penalty_or(1.0)}")
    print(f"{'max_new_tokens':<20} {max_new_tokens}")


def cmd_shards(args):
    """List the deduplicated weight files of a checkpoint directory."""
    from streamgen.core.repo import LocalRepo

    repo = LocalRepo(Path(args.model_dir).name, args.model_dir)
    files = repo.safetensors_files()
    for f in files:
        print(f)
    print(f"{len(files)} file(s)")


def _parse_message(text: str) -> dict:
    role, sep, content = text.partition(":")
    if not sep:
        raise argparse.ArgumentTypeError(f"expected role:content, got {text!r}")
    return {"role": role.strip(), "content": content}


def cmd_render(args):
    """Print the prompt the chat template builds for the given messages."""
    from streamgen.core.repo import LocalRepo

    repo = LocalRepo(Path(args.model_dir).name, args.model_dir)
    template = repo.load_chat_template()
    print(template.apply(args.message, add_generation_prompt=not args.no_generation_prompt))


def cmd_tokenize(args):
    """Encode text, then stream it back through the detokenizer."""
    from streamgen.core.repo import LocalRepo
    from streamgen.core.streaming import TextOutputStream

    repo = LocalRepo(Path(args.model_dir).name, args.model_dir)
    tokenizer = repo.load_tokenizer()
    ids = tokenizer.encode(args.text, add_special_tokens=False)
    print(f"tokens ({len(ids)}): {ids}")

    stream = TextOutputStream(tokenizer)
    fragments = [f for f in (stream.push(t) for t in ids) if f]
    rest = stream.decode_rest()
    if rest:
        fragments.append(rest)
    print(f"fragments ({len(fragments)}): {fragments}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="streamgen",
        description="Streaming text generation toolkit for causal language models",
    )
    parser.add_argument("--log-level", default="WARNING", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    parser.add_argument("--json-logs", action="store_true", help="Log as JSON lines")
    sub = parser.add_subparsers(dest="command")

    # config
    p_config = sub.add_parser("config", help="Resolve a generation config")
    p_config.add_argument("path", help="Path to generation_config.json")
    p_config.add_argument("--temperature", type=float, default=None)
    p_config.add_argument("--top-k", type=int, default=None)
    p_config.add_argument("--top-p", type=float, default=None)
    p_config.add_argument("--repetition-penalty", type=float, default=None)
    p_config.add_argument("--max-new-tokens", type=int, default=None)
    p_config.set_defaults(func=cmd_config)

    # shards
    p_shards = sub.add_parser("shards", help="List weight files of a checkpoint")
    p_shards.add_argument("model_dir", help="Checkpoint directory")
    p_shards.set_defaults(func=cmd_shards)

    # render
    p_render = sub.add_parser("render", help="Render a chat prompt")
    p_render.add_argument("model_dir", help="Checkpoint directory (tokenizer_config.json)")
    p_render.add_argument("-m", "--message", type=_parse_message, action="append", required=True,
                          help="role:content, repeatable")
    p_render.add_argument("--no-generation-prompt", action="store_true",
                          help="Do not append the assistant turn marker")
    p_render.set_defaults(func=cmd_render)

    # tokenize
    p_tok = sub.add_parser("tokenize", help="Encode text and stream it back")
    p_tok.add_argument("model_dir", help="Checkpoint directory (tokenizer.json)")
    p_tok.add_argument("text")
    p_tok.set_defaults(func=cmd_tokenize)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging(level=args.log_level, json_output=args.json_logs)
    try:
        args.func(args)
    except StreamGenError as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
