# chargeroute package
