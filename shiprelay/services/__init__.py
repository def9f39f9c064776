# Services layer: upstream clients and fulfillment logic
