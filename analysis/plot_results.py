"""
Analysis and visualization of session metrics.
Generates plots for channel activity, lobby polling, hit submissions and
reconciliation cost.
"""

import json
import os

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np


def load_metrics(filepath: str) -> dict:
    """Load a metrics JSON file."""
    with open(filepath) as f:
        return json.load(f)


def plot_channel_activity(data: dict, output_dir: str = 'analysis'):
    """Events and snapshots over time, one row per source."""
    os.makedirs(output_dir, exist_ok=True)

    fig, axes = plt.subplots(2, 1, figsize=(12, 8), sharex=True)
    fig.suptitle('Session Channel Activity', fontsize=14, fontweight='bold')

    # ── 1. Events by type ──
    ax = axes[0]
    events = data.get('events', [])
    types = sorted({e['type'] for e in events})
    for row, etype in enumerate(types):
        times = [e['t'] for e in events if e['type'] == etype]
        ax.scatter(times, [row] * len(times), s=18, label=etype)
    ax.set_yticks(range(len(types)))
    ax.set_yticklabels(types)
    ax.set_title('Fast Channel Events')
    ax.grid(True, alpha=0.3)

    # ── 2. Snapshot rounds by source ──
    ax = axes[1]
    snapshots = data.get('snapshots', [])
    colors = {'push': '#2196F3', 'seed': '#4CAF50', 'poll': '#FF9800'}
    for source, color in colors.items():
        picked = [s for s in snapshots if s['source'] == source]
        if picked:
            ax.step([s['t'] for s in picked], [s['round'] for s in picked],
                    where='post', color=color, label=source)
    ax.set_title('Snapshot Round by Source')
    ax.set_xlabel('Time (s)')
    ax.set_ylabel('Round')
    if snapshots:
        ax.legend(fontsize=9)
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    path = os.path.join(output_dir, 'channel_activity.png')
    plt.savefig(path, dpi=150)
    print(f"[ANALYSIS] Saved: {path}")
    plt.close()


def plot_hits(data: dict, output_dir: str = 'analysis'):
    """Hit submission latency and outcome."""
    hits = data.get('hits', [])
    if not hits:
        print("[ANALYSIS] No hit data.")
        return
    os.makedirs(output_dir, exist_ok=True)

    fig, axes = plt.subplots(1, 2, figsize=(12, 5))
    fig.suptitle('Hit Submissions', fontsize=13)

    ok = [h for h in hits if h['ok']]
    failed = [h for h in hits if not h['ok']]
    axes[0].scatter([h['t'] for h in ok], [h['latency_ms'] for h in ok],
                    color='#4CAF50', label='accepted', s=20)
    axes[0].scatter([h['t'] for h in failed], [h['latency_ms'] for h in failed],
                    color='red', marker='x', label='rejected', s=20)
    axes[0].set_title('Latency Over Time')
    axes[0].set_xlabel('Time (s)')
    axes[0].set_ylabel('Latency (ms)')
    axes[0].legend(fontsize=9)
    axes[0].grid(True, alpha=0.3)

    sorted_vals = np.sort([h['latency_ms'] for h in hits])
    cdf = np.arange(1, len(sorted_vals) + 1) / len(sorted_vals)
    axes[1].plot(sorted_vals, cdf * 100, linewidth=1.5, color='purple')
    axes[1].set_title('Latency CDF')
    axes[1].set_xlabel('Latency (ms)')
    axes[1].set_ylabel('Percentile (%)')
    axes[1].grid(True, alpha=0.3)

    plt.tight_layout()
    path = os.path.join(output_dir, 'hit_analysis.png')
    plt.savefig(path, dpi=150)
    print(f"[ANALYSIS] Saved: {path}")
    plt.close()


def plot_reconcile_times(data: dict, output_dir: str = 'analysis'):
    """Per-update reconciliation cost."""
    times = data.get('reconcile_times', [])
    if not times:
        return
    os.makedirs(output_dir, exist_ok=True)

    fig, ax = plt.subplots(figsize=(10, 4))
    durations = [r['duration_ms'] for r in times]
    ax.plot([r['t'] for r in times], durations, linewidth=0.8,
            color='#FF5722')
    mean_d = np.mean(durations)
    ax.axhline(y=mean_d, color='blue', linestyle='--',
               label=f'Mean: {mean_d:.4f} ms')
    ax.set_title('Reconciliation Time')
    ax.set_xlabel('Time (s)')
    ax.set_ylabel('Duration (ms)')
    ax.legend()
    ax.grid(True, alpha=0.3)

    plt.tight_layout()
    path = os.path.join(output_dir, 'reconcile_time_analysis.png')
    plt.savefig(path, dpi=150)
    print(f"[ANALYSIS] Saved: {path}")
    plt.close()


def analyze_all(filepath: str, output_dir: str = 'analysis'):
    """Run all analysis on a metrics file."""
    print(f"[ANALYSIS] Loading {filepath}...")
    data = load_metrics(filepath)

    plot_channel_activity(data, output_dir)
    plot_hits(data, output_dir)
    plot_reconcile_times(data, output_dir)

    print("\n=== Metrics Summary ===")
    print(f"  Events:    {len(data.get('events', []))}")
    print(f"  Snapshots: {len(data.get('snapshots', []))}")

    polls = data.get('polls', [])
    if polls:
        changed = sum(1 for p in polls if p['changed'])
        print(f"  Polls:     {len(polls)} ({changed} with changes)")

    latencies = [h['latency_ms'] for h in data.get('hits', [])]
    if latencies:
        print(f"  Hit latency: mean={np.mean(latencies):.1f} ms, "
              f"P95={np.percentile(latencies, 95):.1f} ms")

    durations = [r['duration_ms'] for r in data.get('reconcile_times', [])]
    if durations:
        print(f"  Reconcile:   mean={np.mean(durations):.4f} ms, "
              f"max={np.max(durations):.4f} ms")


if __name__ == '__main__':
    import argparse
    parser = argparse.ArgumentParser(description='Analyze session metrics')
    parser.add_argument('file', help='Metrics JSON file to analyze')
    parser.add_argument('--output', default='analysis', help='Output directory')
    args = parser.parse_args()
    analyze_all(args.file, args.output)
