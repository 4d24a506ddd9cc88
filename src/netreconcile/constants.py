"""Constants shared across handlers: REST paths, names and built-ins."""

COMMON = "Common"
LOCAL_ONLY = "LOCAL_ONLY"
LOCAL_ONLY_TRAFFIC_GROUP = "traffic-group-local-only"
DEFAULT_ROUTE_DOMAIN = "0"
VXLAN_TUNNEL_TYPE = "vxlan"
VXLAN_PROFILE_SUFFIX = "_vxlan"
SYNC_IP_NONE = "none"

PATHS = {
    "DeviceGroup": "/tm/cm/device-group",
    "Device": "/tm/cm/device",
    "DNS_Resolver": "/tm/net/dns-resolver",
    "Route": "/tm/net/route",
    "SelfIp": "/tm/net/self",
    "FirewallPolicy": "/tm/security/firewall/policy",
    "FirewallAddressList": "/tm/security/firewall/address-list",
    "FirewallPortList": "/tm/security/firewall/port-list",
    "VLAN": "/tm/net/vlan",
    "Trunk": "/tm/net/trunk",
    "RouteDomain": "/tm/net/route-domain",
    "RemoteAuthRole": "/tm/auth/remote-role/role-info",
    "ManagementRoute": "/tm/sys/management-route",
    "Tunnel": "/tm/net/tunnels/tunnel",
    "VXLAN": "/tm/net/tunnels/vxlan",
    "RouteMap": "/tm/net/routing/route-map",
    "RoutingAccessList": "/tm/net/routing/access-list",
    "RoutingAsPath": "/tm/net/routing/as-path",
    "RoutingPrefixList": "/tm/net/routing/prefix-list",
    "GSLBGeneral": "/tm/gtm/global-settings/general",
    "GSLBMonitor": "/tm/gtm/monitor",
    "GSLBProberPool": "/tm/gtm/prober-pool",
    "GSLBServer": "/tm/gtm/server",
    "GSLBDataCenter": "/tm/gtm/datacenter",
    "SnmpTrapDestination": "/tm/sys/snmp/traps",
    "SnmpCommunity": "/tm/sys/snmp/communities",
    "SnmpUser": "/tm/sys/snmp/users",
    "Provision": "/tm/sys/provision",
    "Folder": "/tm/sys/folder",
    "DbVariable": "/tm/sys/db",
    "AuthRadiusServer": "/tm/auth/radius-server",
    "SSLCert": "/tm/sys/file/ssl-cert",
    "SSLKey": "/tm/sys/file/ssl-key",
    "Transaction": "/tm/transaction",
}

# Objects are deleted in this order
DELETABLE_CLASSES = [
    "DeviceGroup",
    "DNS_Resolver",
    "Route",
    "SelfIp",
    "FirewallPolicy",
    "FirewallAddressList",
    "FirewallPortList",
    "VLAN",
    "Trunk",
    "RouteDomain",
    "RemoteAuthRole",
    "ManagementRoute",
    "Tunnel",
    "RouteMap",
    "RoutingAccessList",
    "RoutingAsPath",
    "RoutingPrefixList",
    "GSLBMonitor",
    "SnmpTrapDestination",
    "SnmpCommunity",
    "SnmpUser",
]

# GSLB classes that reference one another; deleted and created together
GSLB_LINKED_CLASSES = ["GSLBProberPool", "GSLBServer", "GSLBDataCenter"]

# Built-in objects the appliance refuses to delete
RETAINED_OBJECTS = {
    "RouteDomain": {DEFAULT_ROUTE_DOMAIN},
    "Tunnel": {"http-tunnel", "socks-tunnel"},
    "DNS_Resolver": {"f5-aws-dns"},
    "GSLBMonitor": {"http", "https", "gateway_icmp", "bigip", "tcp", "udp"},
    "DeviceGroup": {"device_trust_group", "gtm", "datasync-global-dg", "dos-global-dg"},
}

AUTH_SUBCLASSES_NAME = "system-auth"
AUTH_DELETABLE_TYPES = ["radius", "ldap", "tacacs"]
RADIUS_SERVERS = ["system_auth_name1", "system_auth_name2"]

# LDAP certificate objects, keyed by the current-config property that references them
LDAP_CERTS = {
    "sslCaCert": "do_ldapCaCert.crt",
    "sslClientCert": "do_ldapClientCert.crt",
}
LDAP_KEYS = {
    "sslClientKey": "do_ldapClientCert.key",
}

ROUTING_DB_VARIABLE = "tmrouted.tmos.routing"

# Provisioning these modules requires a reboot
REBOOT_REQUIRED_MODULES = {"vcmp"}


def item_path(collection: str, name: str, partition: str = COMMON) -> str:
    """Build the item path for a partitioned object."""
    return f"{collection}/~{partition}~{name}"


def is_floating(traffic_group: str) -> bool:
    """Check whether a traffic group makes a self IP floating."""
    return bool(traffic_group) and not traffic_group.endswith(LOCAL_ONLY_TRAFFIC_GROUP)
