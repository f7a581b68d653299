"""
Dynamic device scaler.

Modules:
- state: claims, composable devices, requests and the compatibility table
- config: environment settings and compatibility table loading
- policy: device coexistence policies
- inventory: Kubernetes reads and writes
- failure: fails claims that break coexistence or capacity rules
- reschedule: reclaims idle devices or reschedules claims
- labels: node label synchronization
- controller: per-node pass orchestration
- api: HTTP trigger surface
"""
