"""Field-service back office: time & attendance reconciliation engine."""
