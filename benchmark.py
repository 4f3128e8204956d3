"""
xen Benchmark Suite
Times checked arithmetic, heap allocation and reference handle churn
"""
import time
import statistics
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))
import xen
from xen import CheckedU64, ObservedRef, SharedRef, Str, UniqueRef
from xen.heap import Heap

print("=" * 80)
print("xen Benchmark Suite")
print("=" * 80)

def benchmark(func, *args, iterations=5, warmup=1):
    """Run benchmark with warmup and multiple iterations"""
    # Warmup (also triggers numba compilation)
    for _ in range(warmup):
        func(*args)

    times = []
    for _ in range(iterations):
        start = time.perf_counter()
        result = func(*args)
        end = time.perf_counter()
        times.append(end - start)

    return {
        'mean': statistics.mean(times),
        'median': statistics.median(times),
        'stdev': statistics.stdev(times) if len(times) > 1 else 0,
        'min': min(times),
        'max': max(times),
        'result': result
    }

def report(label, stats, ops):
    per_op = stats['mean'] / ops * 1e9
    print(f"  {label:<28} {stats['mean'] * 1000:9.3f} ms  ({per_op:8.1f} ns/op)")

N = 20_000

# ============================================================================
# Test 1: Checked arithmetic vs plain int
# ============================================================================
print("\n[1] Checked u64 arithmetic")
print("-" * 80)

def sum_plain(n):
    total = 0
    for i in range(n):
        total += i
    return total

def sum_checked(n):
    total = CheckedU64(0)
    for i in range(n):
        total += i
    return int(total)

plain = benchmark(sum_plain, N)
checked = benchmark(sum_checked, N)
assert plain['result'] == checked['result']
report("plain int +=", plain, N)
report("CheckedU64 +=", checked, N)

# ============================================================================
# Test 2: Heap allocation
# ============================================================================
print("\n[2] Heap slab alloc/free")
print("-" * 80)

def alloc_free(n):
    heap = Heap(size=1024 * 1024)
    ptrs = [heap.alloc(16) for _ in range(n)]
    for ptr in ptrs:
        heap.free(ptr, 16)
    return len(ptrs)

report("alloc+free 16B", benchmark(alloc_free, N), N)

# ============================================================================
# Test 3: Handle churn
# ============================================================================
print("\n[3] Reference handles")
print("-" * 80)

def unique_churn(n):
    for i in range(n):
        ref = UniqueRef(xen.new(i))
        ref.reset()
    return n

def shared_copies(n):
    root = SharedRef(xen.new("payload"))
    copies = [root.copy() for _ in range(n)]
    peak = int(root.count())
    for ref in copies:
        ref.reset()
    root.reset()
    return peak

def observed_copies(n):
    root = ObservedRef(xen.new("payload"))
    weak = root.get_weak_ref()
    copies = [weak.lock() for _ in range(n)]
    peak = int(root.strong_count())
    for ref in copies:
        ref.reset()
    root.reset()
    weak.reset()
    return peak

def str_concat(n):
    s = Str()
    for _ in range(n):
        s += "x"
    return len(s)

report("UniqueRef new+reset", benchmark(unique_churn, N), N)
report("SharedRef copy+reset", benchmark(shared_copies, N), N)
report("WeakRef lock+reset", benchmark(observed_copies, N), N)
report("Str += (1k)", benchmark(str_concat, 1000), 1000)

used, total = xen.default_heap().get_usage()
print(f"\nDefault heap: {used} / {total} bytes, {xen.default_heap().live_values()} live values")
print("=" * 80)
