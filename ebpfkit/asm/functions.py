"""Built-in eBPF helper functions."""

from enum import IntEnum, auto


class BuiltinFunc(IntEnum):
    """A built-in eBPF helper, numbered as the kernel numbers it."""

    UNSPEC = 0
    MAP_LOOKUP_ELEM = auto()
    MAP_UPDATE_ELEM = auto()
    MAP_DELETE_ELEM = auto()
    PROBE_READ = auto()
    KTIME_GET_NS = auto()
    TRACE_PRINTK = auto()
    GET_PRANDOM_U32 = auto()
    GET_SMP_PROCESSOR_ID = auto()
    SKB_STORE_BYTES = auto()
    L3_CSUM_REPLACE = auto()
    L4_CSUM_REPLACE = auto()
    TAIL_CALL = auto()
    CLONE_REDIRECT = auto()
    GET_CURRENT_PID_TGID = auto()
    GET_CURRENT_UID_GID = auto()
    GET_CURRENT_COMM = auto()
    GET_CGROUP_CLASSID = auto()
    SKB_VLAN_PUSH = auto()
    SKB_VLAN_POP = auto()
    SKB_GET_TUNNEL_KEY = auto()
    SKB_SET_TUNNEL_KEY = auto()
    PERF_EVENT_READ = auto()
    REDIRECT = auto()
    GET_ROUTE_REALM = auto()
    PERF_EVENT_OUTPUT = auto()
    SKB_LOAD_BYTES = auto()
    GET_STACKID = auto()
    CSUM_DIFF = auto()
    SKB_GET_TUNNEL_OPT = auto()
    SKB_SET_TUNNEL_OPT = auto()
    SKB_CHANGE_PROTO = auto()
    SKB_CHANGE_TYPE = auto()
    SKB_UNDER_CGROUP = auto()
    GET_HASH_RECALC = auto()
    GET_CURRENT_TASK = auto()
    PROBE_WRITE_USER = auto()
    CURRENT_TASK_UNDER_CGROUP = auto()
    SKB_CHANGE_TAIL = auto()
    SKB_PULL_DATA = auto()
    CSUM_UPDATE = auto()
    SET_HASH_INVALID = auto()
    GET_NUMA_NODE_ID = auto()
    SKB_CHANGE_HEAD = auto()
    XDP_ADJUST_HEAD = auto()
    PROBE_READ_STR = auto()
    GET_SOCKET_COOKIE = auto()
    GET_SOCKET_UID = auto()
    SET_HASH = auto()
    SETSOCKOPT = auto()
    SKB_ADJUST_ROOM = auto()
    REDIRECT_MAP = auto()
    SK_REDIRECT_MAP = auto()
    SOCK_MAP_UPDATE = auto()
    XDP_ADJUST_META = auto()
    PERF_EVENT_READ_VALUE = auto()
    PERF_PROG_READ_VALUE = auto()
    GETSOCKOPT = auto()
    OVERRIDE_RETURN = auto()
    SOCK_OPS_CB_FLAGS_SET = auto()
    MSG_REDIRECT_MAP = auto()
    MSG_APPLY_BYTES = auto()
    MSG_CORK_BYTES = auto()
    MSG_PULL_DATA = auto()
    BIND = auto()
    XDP_ADJUST_TAIL = auto()
    SKB_GET_XFRM_STATE = auto()
    GET_STACK = auto()
    SKB_LOAD_BYTES_RELATIVE = auto()
    FIB_LOOKUP = auto()
    SOCK_HASH_UPDATE = auto()
    MSG_REDIRECT_HASH = auto()
    SK_REDIRECT_HASH = auto()
    LWT_PUSH_ENCAP = auto()
    LWT_SEG6_STORE_BYTES = auto()
    LWT_SEG6_ADJUST_SRH = auto()
    LWT_SEG6_ACTION = auto()
    RC_REPEAT = auto()
    RC_KEYDOWN = auto()
    SKB_CGROUP_ID = auto()
    GET_CURRENT_CGROUP_ID = auto()
    GET_LOCAL_STORAGE = auto()
    SK_SELECT_REUSEPORT = auto()
    SKB_ANCESTOR_CGROUP_ID = auto()
    SK_LOOKUP_TCP = auto()
    SK_LOOKUP_UDP = auto()
    SK_RELEASE = auto()
    MAP_PUSH_ELEM = auto()
    MAP_POP_ELEM = auto()
    MAP_PEEK_ELEM = auto()
    MSG_PUSH_DATA = auto()
    MSG_POP_DATA = auto()
    RC_POINTER_REL = auto()
    SPIN_LOCK = auto()
    SPIN_UNLOCK = auto()
    SK_FULLSOCK = auto()
    TCP_SOCK = auto()
    SKB_ECN_SET_CE = auto()
    GET_LISTENER_SOCK = auto()
    SKC_LOOKUP_TCP = auto()
    TCP_CHECK_SYNCOOKIE = auto()
    SYSCTL_GET_NAME = auto()
    SYSCTL_GET_CURRENT_VALUE = auto()
    SYSCTL_GET_NEW_VALUE = auto()
    SYSCTL_SET_NEW_VALUE = auto()
    STRTOL = auto()
    STRTOUL = auto()
    SK_STORAGE_GET = auto()
    SK_STORAGE_DELETE = auto()
    SEND_SIGNAL = auto()
    TCP_GEN_SYNCOOKIE = auto()
    SKB_OUTPUT = auto()
    PROBE_READ_USER = auto()
    PROBE_READ_KERNEL = auto()
    PROBE_READ_USER_STR = auto()
    PROBE_READ_KERNEL_STR = auto()
    TCP_SEND_ACK = auto()
    SEND_SIGNAL_THREAD = auto()
    JIFFIES64 = auto()
    READ_BRANCH_RECORDS = auto()
    GET_NS_CURRENT_PID_TGID = auto()
    XDP_OUTPUT = auto()
    GET_NETNS_COOKIE = auto()
    GET_CURRENT_ANCESTOR_CGROUP_ID = auto()
    SK_ASSIGN = auto()
    KTIME_GET_BOOT_NS = auto()
    SEQ_PRINTF = auto()
    SEQ_WRITE = auto()
    SK_CGROUP_ID = auto()
    SK_ANCESTOR_CGROUP_ID = auto()
    RINGBUF_OUTPUT = auto()
    RINGBUF_RESERVE = auto()
    RINGBUF_SUBMIT = auto()
    RINGBUF_DISCARD = auto()
    RINGBUF_QUERY = auto()
    CSUM_LEVEL = auto()
    SKC_TO_TCP6_SOCK = auto()
    SKC_TO_TCP_SOCK = auto()
    SKC_TO_TCP_TIMEWAIT_SOCK = auto()
    SKC_TO_TCP_REQUEST_SOCK = auto()
    SKC_TO_UDP6_SOCK = auto()
    GET_TASK_STACK = auto()
    LOAD_HDR_OPT = auto()
    STORE_HDR_OPT = auto()
    RESERVE_HDR_OPT = auto()
    INODE_STORAGE_GET = auto()
    INODE_STORAGE_DELETE = auto()
    D_PATH = auto()
    COPY_FROM_USER = auto()
    SNPRINTF_BTF = auto()
    SEQ_PRINTF_BTF = auto()
    SKB_CGROUP_CLASSID = auto()
    REDIRECT_NEIGH = auto()
    PER_CPU_PTR = auto()
    THIS_CPU_PTR = auto()
    REDIRECT_PEER = auto()
    TASK_STORAGE_GET = auto()
    TASK_STORAGE_DELETE = auto()
    GET_CURRENT_TASK_BTF = auto()
    BPRM_OPTS_SET = auto()
    KTIME_GET_COARSE_NS = auto()
    IMA_INODE_HASH = auto()
    SOCK_FROM_FILE = auto()
    CHECK_MTU = auto()
    FOR_EACH_MAP_ELEM = auto()
    SNPRINTF = auto()
    SYS_BPF = auto()
    BTF_FIND_BY_NAME_KIND = auto()
    SYS_CLOSE = auto()

    def __str__(self) -> str:
        return "Fn" + "".join(part.capitalize() for part in self.name.split("_"))

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)