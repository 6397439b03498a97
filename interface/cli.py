"""Command line entry point: search, train, label and play."""

import argparse
import random
import sys

from hybrid_engine.config import CONFIG, configure_logging
from hybrid_engine.main import Engine
from hybrid_engine.training import Trainer, label_positions, load_dataset, save_dataset


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hybrid-engine", description=CONFIG.ui.engine_name)
    parser.add_argument("--log-level", default=None, help="override config log level")
    parser.add_argument("--model", default=CONFIG.network.model_path, help="model file to load")
    parser.add_argument("--seed", type=int, default=None)
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("bestmove", help="search a position and print the chosen move")
    p.add_argument("--fen", default=None)
    p.add_argument("--depth", type=int, default=CONFIG.search.depth)
    p.add_argument("--material-only", action="store_true")

    p = sub.add_parser("train", help="train the network from a fen,score CSV file")
    p.add_argument("dataset")
    p.add_argument("--epochs", type=int, default=CONFIG.training.epochs)
    p.add_argument("--lr", type=float, default=CONFIG.training.learning_rate)
    p.add_argument("--out", default=None, help="where to save the model (defaults to --model)")

    p = sub.add_parser("label", help="score FENs with a UCI engine into a dataset")
    p.add_argument("fens", help="text file with one FEN per line")
    p.add_argument("out")
    p.add_argument("--engine", required=True, help="path to a UCI engine binary")
    p.add_argument("--depth", type=int, default=CONFIG.training.label_depth)

    sub.add_parser("status", help="print the training status of --model")

    p = sub.add_parser("play", help="play against the engine in the terminal")
    p.add_argument("--depth", type=int, default=CONFIG.search.depth)
    p.add_argument("--black", action="store_true", help="human plays black")
    return parser


def _engine(args, **kwargs) -> Engine:
    return Engine(seed=args.seed, model_path=args.model, **kwargs)


def cmd_bestmove(args) -> int:
    engine = _engine(args, depth=args.depth, use_neural=not args.material_only)
    if args.fen:
        engine.set_fen(args.fen)
    move, score = engine.get_best_move()
    print(f"bestmove {move or '(none)'} score {score}")
    return 0


def cmd_train(args) -> int:
    samples = load_dataset(args.dataset)
    if not samples:
        print(f"No usable samples in {args.dataset}", file=sys.stderr)
        return 1
    engine = _engine(args)
    trainer = Trainer(engine.neural, rng=random.Random(args.seed))
    summary = trainer.run(samples, epochs=args.epochs, learning_rate=args.lr, model_path=args.out or args.model)
    print(engine.neural.training_status())
    print(f"trained {summary['trained']} skipped {summary['skipped']}")
    return 0


def cmd_label(args) -> int:
    with open(args.fens) as f:
        fens = [line.strip() for line in f if line.strip()]
    samples = label_positions(fens, args.engine, depth=args.depth)
    save_dataset(args.out, samples)
    print(f"labelled {len(samples)} positions into {args.out}")
    return 0


def cmd_status(args) -> int:
    if not args.model:
        print("--model is required for status", file=sys.stderr)
        return 1
    engine = Engine(seed=args.seed)
    if not engine.load_model(args.model):
        print(f"Could not load model {args.model}", file=sys.stderr)
        return 1
    print(engine.status_report())
    return 0


def cmd_play(args) -> int:
    engine = _engine(args, depth=args.depth)
    human_white = not args.black
    board = engine.board
    while not board.is_game_over():
        print(board.board)
        print("----------------------------")
        if board.board.turn == human_white:
            user_move = input("Enter your move (uci format, e2e4): ").strip()
            if user_move == "quit":
                return 0
            if not engine.make_move(user_move):
                print("Illegal move, try again.")
            continue
        move, score = engine.get_best_move()
        if move is None:
            break
        print(f"Engine plays: {move} | Eval: {score}")
        engine.make_move(move)
    print("Game Over")
    print(f"Result: {board.board.result()}")
    return 0


COMMANDS = {
    "bestmove": cmd_bestmove,
    "train": cmd_train,
    "label": cmd_label,
    "status": cmd_status,
    "play": cmd_play,
}


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    return COMMANDS[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
