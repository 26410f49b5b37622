"""
Módulo de Facturas

- Emisión de comprobantes electrónicos con CAE de ARCA
- Numeración por punto de venta y tipo de comprobante
- Cálculo de neto, IVA, exento y total
- Consultas, estadísticas y barrido de facturas PENDING vencidas
"""
