def format_info(d, score, nodes, elapsed, pv_moves, MATE_SCORE):
    pv_str = " ".join(m.uci() for m in pv_moves)
    nps = int(nodes / elapsed) if elapsed > 0 else 0

    if abs(score) >= MATE_SCORE:
        score_str = f"mate {1 if score > 0 else -1}"
    else:
        score_str = f"cp {score}"

    return f"info depth {d} score {score_str} nodes {nodes} nps {nps} time {int(elapsed * 1000)} pv {pv_str}"
