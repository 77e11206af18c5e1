"""Names and chart locations shared across the networking extension."""

import os

TYPE = "calico"

NAME = "networking-calico"

CNI_IMAGE_NAME = "calico-cni"
NODE_IMAGE_NAME = "calico-node"
KUBE_CONTROLLERS_IMAGE_NAME = "calico-kube-controllers"
POD_TO_DAEMON_FLEX_VOLUME_DRIVER_IMAGE_NAME = "calico-podtodaemon-flex"
TYPHA_IMAGE_NAME = "calico-typha"
CALICO_CLUSTER_PROPORTIONAL_AUTOSCALER_IMAGE_NAME = "calico-cpa"
CLUSTER_PROPORTIONAL_VERTICAL_AUTOSCALER_IMAGE_NAME = "calico-cpva"

MONITORING_NAME = "calico-monitoring-config"

RELEASE_NAME = "calico"

CHARTS_PATH = os.path.join("charts")
INTERNAL_CHARTS_PATH = os.path.join(CHARTS_PATH, "internal")
CALICO_CHART_PATH = os.path.join(INTERNAL_CHARTS_PATH, "calico")
CALICO_MONITORING_CHART_PATH = os.path.join(INTERNAL_CHARTS_PATH, "calico-monitoring")